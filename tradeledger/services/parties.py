import logging
import re
from dataclasses import dataclass

from tradeledger.core.config import settings
from tradeledger.core.errors import ValidationFailure
from tradeledger.services.records import PartyRecord, PartyType

logger = logging.getLogger(__name__)

_COMPOSITE_REFERENCE = re.compile(r"^(.*?)\s*\((.*?)\)\s*$")
_NON_DIGITS = re.compile(r"\D")


def _clean(value) -> str:
    return str(value or "").strip()


def alias_key(value) -> str:
    return _clean(value).casefold()


def split_composite(reference: str) -> list[str]:
    match = _COMPOSITE_REFERENCE.match(_clean(reference))
    if not match:
        return []
    return [part.strip() for part in match.groups() if part and part.strip()]


def _id_sort_key(party: PartyRecord) -> tuple:
    raw = str(party.id)
    return (0, int(raw), raw) if raw.isdigit() else (1, 0, raw)


def display_name(party: PartyRecord) -> str:
    person = _clean(party.person)
    description = _clean(party.description)
    if person and description and person != description:
        return f"{person} ({description})"
    return person or description or _clean(party.code) or str(party.id)


def party_aliases(party: PartyRecord) -> set[str]:
    forms = {str(party.id), _clean(party.code), _clean(party.person), _clean(party.description), display_name(party)}
    return {form for form in forms if form}


def contact_phone(party: PartyRecord) -> str | None:
    return _clean(party.mobile) or _clean(party.phone) or None


def normalize_whatsapp_phone(
    raw: str | None,
    country_code: str | None = None,
    mobile_prefix: str | None = None,
) -> str | None:
    """Return an international digit string usable in a wa.me link, or None."""
    cc = settings.phone_country_code if country_code is None else country_code
    prefix = settings.phone_mobile_prefix if mobile_prefix is None else mobile_prefix
    digits = _NON_DIGITS.sub("", str(raw or ""))
    if not digits:
        return None
    if cc and digits.startswith("00" + cc):
        digits = cc + digits[2 + len(cc):]
    if digits.startswith("0") and len(digits) == 11:
        return cc + digits[1:]
    if prefix and len(digits) == 10 and digits.startswith(prefix):
        return cc + digits
    return digits


@dataclass(frozen=True)
class ResolvedParty:
    party_type: PartyType
    query: str
    display_name: str
    aliases: frozenset[str]
    phone: str | None = None
    whatsapp: str | None = None
    matched: bool = False
    party_ids: tuple[str, ...] = ()

    def matches(self, reference) -> bool:
        key = alias_key(reference)
        if not key:
            return False
        if key in self.aliases:
            return True
        return any(alias_key(part) in self.aliases for part in split_composite(reference))


def resolve_party(parties, party_type, query) -> ResolvedParty:
    party_type = PartyType.parse(party_type)
    raw = _clean(query)
    if not raw:
        raise ValidationFailure("Party query must not be empty")

    needle = raw.casefold()
    tokens = {needle} | {alias_key(part) for part in split_composite(raw)}
    exact: list[PartyRecord] = []
    partial: list[PartyRecord] = []
    for party in sorted(parties, key=_id_sort_key):
        if party.party_type is not party_type:
            continue
        keys = {alias_key(alias) for alias in party_aliases(party)}
        if keys & tokens:
            exact.append(party)
        elif any(needle in key for key in keys):
            partial.append(party)

    matches = exact or partial
    if not matches:
        logger.info("No %s matches %r; using the raw query as its only alias", party_type.value, raw)
        return ResolvedParty(
            party_type=party_type,
            query=raw,
            display_name=raw,
            aliases=frozenset({needle}),
        )

    party = matches[0]
    if len(matches) > 1:
        logger.info(
            "%s query %r matches %d parties; using id %s",
            party_type.value,
            raw,
            len(matches),
            party.id,
        )
    phone = contact_phone(party)
    return ResolvedParty(
        party_type=party_type,
        query=raw,
        display_name=display_name(party),
        aliases=frozenset(alias_key(alias) for alias in party_aliases(party)),
        phone=phone,
        whatsapp=normalize_whatsapp_phone(phone),
        matched=True,
        party_ids=(str(party.id),),
    )


class PartyDirectory:
    def __init__(self, parties, party_type: PartyType):
        self.party_type = PartyType.parse(party_type)
        self._parties = sorted(
            (party for party in parties if party.party_type is self.party_type),
            key=_id_sort_key,
        )
        self._by_alias: dict[str, PartyRecord] = {}
        for party in self._parties:
            for alias in party_aliases(party):
                self._by_alias.setdefault(alias_key(alias), party)

    @property
    def parties(self) -> list[PartyRecord]:
        return list(self._parties)

    def lookup(self, reference) -> PartyRecord | None:
        key = alias_key(reference)
        if not key:
            return None
        party = self._by_alias.get(key)
        if party is not None:
            return party
        for part in split_composite(reference):
            party = self._by_alias.get(alias_key(part))
            if party is not None:
                return party
        return None

    def canonical_name(self, reference) -> str:
        party = self.lookup(reference)
        if party is None:
            return _clean(reference) or "N/A"
        return display_name(party)

    def contact(self, reference) -> tuple[str | None, str | None]:
        party = self.lookup(reference)
        phone = contact_phone(party) if party is not None else None
        return phone, normalize_whatsapp_phone(phone)
