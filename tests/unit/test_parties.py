import pytest

from tradeledger.core.errors import ValidationFailure
from tradeledger.services.parties import (
    PartyDirectory,
    display_name,
    normalize_whatsapp_phone,
    resolve_party,
    split_composite,
)
from tradeledger.services.records import PartyRecord, PartyType

PARTIES = [
    PartyRecord("1", PartyType.CUSTOMER, code="C-001", person="Ali", description="Ali Traders", mobile="0300-1234567"),
    PartyRecord("2", PartyType.CUSTOMER, code="C-002", person="Bilal", description="Bilal Paper", phone="042 3577 0000"),
    PartyRecord("3", PartyType.SUPPLIER, code="S-001", person="Ali", description="Ali Mills"),
    PartyRecord("4", PartyType.CUSTOMER, code="C-004", person="Ali Traders Branch"),
]


class TestNormalizeWhatsappPhone:
    def test_local_mobile_gets_country_code(self):
        assert normalize_whatsapp_phone("0300-1234567") == "923001234567"

    def test_international_with_plus_is_unchanged(self):
        assert normalize_whatsapp_phone("+92 300 1234567") == "923001234567"

    def test_double_zero_prefix_is_collapsed(self):
        assert normalize_whatsapp_phone("0092 300 1234567") == "923001234567"

    def test_bare_national_mobile(self):
        assert normalize_whatsapp_phone("300 1234567") == "923001234567"

    def test_foreign_number_is_left_alone(self):
        assert normalize_whatsapp_phone("+44 20 7946 0958") == "442079460958"

    def test_no_digits_gives_none(self):
        assert normalize_whatsapp_phone("n/a") is None
        assert normalize_whatsapp_phone(None) is None
        assert normalize_whatsapp_phone("") is None

    def test_explicit_country_code(self):
        assert normalize_whatsapp_phone("07123456789", country_code="44", mobile_prefix="7") == "447123456789"


class TestDisplayName:
    def test_person_and_description(self):
        assert display_name(PARTIES[0]) == "Ali (Ali Traders)"

    def test_same_person_and_description_is_not_repeated(self):
        party = PartyRecord("9", PartyType.CUSTOMER, person="Zed", description="Zed")
        assert display_name(party) == "Zed"

    def test_falls_back_to_code_then_id(self):
        assert display_name(PartyRecord("9", PartyType.CUSTOMER, code="C-9")) == "C-9"
        assert display_name(PartyRecord("9", PartyType.CUSTOMER)) == "9"

    def test_split_composite(self):
        assert split_composite("Ali (Ali Traders)") == ["Ali", "Ali Traders"]
        assert split_composite("Ali Traders") == []


class TestResolveParty:
    def test_resolve_by_id(self):
        party = resolve_party(PARTIES, "Customer", "1")

        assert party.matched
        assert party.display_name == "Ali (Ali Traders)"
        assert {"1", "c-001", "ali", "ali traders", "ali (ali traders)"} <= party.aliases
        assert party.phone == "0300-1234567"
        assert party.whatsapp == "923001234567"
        assert party.party_ids == ("1",)

    def test_resolve_by_code_is_case_insensitive(self):
        party = resolve_party(PARTIES, PartyType.CUSTOMER, "c-002")

        assert party.display_name == "Bilal (Bilal Paper)"
        assert party.whatsapp == "924235770000"

    def test_composite_query_matches_exactly(self):
        party = resolve_party(PARTIES, PartyType.CUSTOMER, "Ali (Ali Traders)")

        assert party.party_ids == ("1",)

    def test_exact_match_beats_partial(self):
        # "Ali Traders" is an exact alias of party 1 and a substring of party 4.
        party = resolve_party(PARTIES, PartyType.CUSTOMER, "Ali Traders")

        assert party.party_ids == ("1",)
        assert "ali traders branch" not in party.aliases

    def test_ambiguous_partial_query_picks_lowest_id_only(self):
        party = resolve_party(PARTIES, PartyType.CUSTOMER, "trad")

        assert party.party_ids == ("1",)
        assert party.display_name == "Ali (Ali Traders)"
        assert "c-004" not in party.aliases
        assert "ali traders branch" not in party.aliases

    def test_party_type_scopes_the_search(self):
        party = resolve_party(PARTIES, PartyType.SUPPLIER, "Ali")

        assert party.party_ids == ("3",)
        assert "ali mills" in party.aliases
        assert "ali traders" not in party.aliases

    def test_unmatched_query_degrades_to_itself(self):
        party = resolve_party(PARTIES, PartyType.CUSTOMER, "Walk-in Customer")

        assert not party.matched
        assert party.display_name == "Walk-in Customer"
        assert party.aliases == frozenset({"walk-in customer"})
        assert party.phone is None
        assert party.matches("WALK-IN CUSTOMER")

    def test_empty_query_is_rejected(self):
        with pytest.raises(ValidationFailure):
            resolve_party(PARTIES, PartyType.CUSTOMER, "   ")

    def test_unknown_party_type_is_rejected(self):
        with pytest.raises(ValidationFailure):
            resolve_party(PARTIES, "Employee", "Ali")

    def test_matches_any_reference_form(self):
        party = resolve_party(PARTIES, PartyType.CUSTOMER, "C-001")

        assert party.matches("1")
        assert party.matches("ali traders")
        assert party.matches("Ali (Ali Traders)")
        assert party.matches("Ali (Old Shop)")
        assert not party.matches("Bilal")
        assert not party.matches("")


class TestPartyDirectory:
    def test_canonical_name_for_every_alias_form(self):
        directory = PartyDirectory(PARTIES, PartyType.CUSTOMER)

        for reference in ("1", "C-001", "ali", "Ali Traders", "Ali (Ali Traders)"):
            assert directory.canonical_name(reference) == "Ali (Ali Traders)"

    def test_unknown_reference_keeps_raw_text(self):
        directory = PartyDirectory(PARTIES, PartyType.CUSTOMER)

        assert directory.canonical_name("Cash Customer") == "Cash Customer"
        assert directory.canonical_name("") == "N/A"

    def test_only_parties_of_the_type_are_indexed(self):
        directory = PartyDirectory(PARTIES, PartyType.SUPPLIER)

        assert [party.id for party in directory.parties] == ["3"]
        assert directory.lookup("C-001") is None

    def test_contact(self):
        directory = PartyDirectory(PARTIES, PartyType.CUSTOMER)

        assert directory.contact("C-001") == ("0300-1234567", "923001234567")
        assert directory.contact("nobody") == (None, None)
