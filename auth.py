"""
Signed-message authentication

A request proves wallet ownership by carrying a personal_sign signature over a
short text. The text follows a fixed template per purpose (auth, daily claim,
referral claim, game result) and ends with a millisecond timestamp, so a
signature made for one purpose can't be replayed for another, and can't be
replayed at all once the freshness window has passed.
"""

import re
import time
import logging
from dataclasses import dataclass
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct

import config
from errors import AuthenticationError, ExpiredError, FormatError
from schemas import GAME_IDS

logger = logging.getLogger(__name__)

AUTH = "auth"
DAILY = "daily"
REFERRAL = "referral"
GAME = "game"

_ADDRESS = r"0x[a-fA-F0-9]{40}"
_MILLIS = r"(?P<ts>[0-9]{1,16})"
_GAMES = "|".join(re.escape(g) for g in GAME_IDS)


def _templates(app_name: str):
    app = re.escape(app_name)
    return {
        AUTH: re.compile(rf"{app} auth: (?P<address>{_ADDRESS}) @ {_MILLIS}"),
        DAILY: re.compile(rf"{app} daily claim: (?P<address>{_ADDRESS}) @ {_MILLIS}"),
        REFERRAL: re.compile(rf"{app} referral claim: (?P<address>{_ADDRESS}) from (?P<referrer>{_ADDRESS}) @ {_MILLIS}"),
        GAME: re.compile(rf"{app} game result: (?P<game_id>{_GAMES}) (?P<result>win|loss|draw) @ {_MILLIS}"),
    }


TEMPLATES = _templates(config.APP_NAME)


@dataclass(frozen=True)
class SignedMessage:
    kind: str
    timestamp_ms: int
    address: Optional[str] = None
    referrer: Optional[str] = None
    game_id: Optional[str] = None
    result: Optional[str] = None


def now_millis() -> int:
    return int(time.time() * 1000)


def build_message(kind: str, timestamp_ms: int, address: str = "", referrer: str = "", game_id: str = "", result: str = "") -> str:
    """Render the text a wallet has to sign for the given purpose."""
    app = config.APP_NAME
    if kind == AUTH:
        return f"{app} auth: {address} @ {timestamp_ms}"
    if kind == DAILY:
        return f"{app} daily claim: {address} @ {timestamp_ms}"
    if kind == REFERRAL:
        return f"{app} referral claim: {address} from {referrer} @ {timestamp_ms}"
    if kind == GAME:
        return f"{app} game result: {game_id} {result} @ {timestamp_ms}"
    raise ValueError(f"Unknown message kind: {kind}")


def verify_signature(message: str, signature: str, claimed_address: str) -> bool:
    """True iff `signature` over `message` recovers to `claimed_address`.

    A signature that can't be recovered at all is reported the same way as one
    recovering to a different address.
    """
    try:
        recovered = Account.recover_message(encode_defunct(text=message), signature=signature)
    except Exception as e:
        logger.debug(f"Signature recovery failed: {e}")
        return False
    return recovered.lower() == claimed_address.lower()


def parse_message(message: str, kind: str) -> SignedMessage:
    template = TEMPLATES.get(kind)
    if template is None:
        raise ValueError(f"Unknown message kind: {kind}")
    match = template.fullmatch(message)
    if not match:
        raise FormatError("Invalid message format")
    fields = match.groupdict()
    return SignedMessage(
        kind=kind,
        timestamp_ms=int(fields["ts"]),
        address=(fields.get("address") or "").lower() or None,
        referrer=(fields.get("referrer") or "").lower() or None,
        game_id=fields.get("game_id"),
        result=fields.get("result"),
    )


def is_fresh(timestamp_ms: int, now_ms: int) -> bool:
    gap = now_ms - timestamp_ms
    return -config.CLOCK_SKEW_TOLERANCE_MS <= gap <= config.FRESHNESS_WINDOW_MS


def authenticate(
    address: str,
    signature: str,
    message: str,
    kind: str,
    now_ms: Optional[int] = None,
    **expected: str,
) -> SignedMessage:
    """Gate shared by every signed endpoint.

    Checks, in order: signature, template, agreement between the signed text and
    the request (`expected` holds referrer / game_id / result), freshness.
    """
    address = address.lower()
    if not verify_signature(message, signature, address):
        logger.info(f"Rejected {kind} message for {address}: invalid signature")
        raise AuthenticationError("Invalid signature")

    try:
        signed = parse_message(message, kind)
    except FormatError:
        logger.info(f"Rejected {kind} message for {address}: invalid format")
        raise

    bound = dict(expected, address=address)
    if "referrer" in bound:
        bound["referrer"] = bound["referrer"].lower()
    for field, value in bound.items():
        signed_value = getattr(signed, field)
        if signed_value is not None and signed_value != value:
            logger.info(f"Rejected {kind} message for {address}: {field} does not match request")
            raise FormatError("Message does not match request")

    now_ms = now_millis() if now_ms is None else now_ms
    if not is_fresh(signed.timestamp_ms, now_ms):
        logger.info(f"Rejected {kind} message for {address}: expired ({now_ms - signed.timestamp_ms} ms old)")
        raise ExpiredError("Message expired")
    return signed


class WalletSigner:
    """Signing capability for a single wallet.

    Handed explicitly to whatever needs to produce signed messages (seed scripts,
    tests); backed by a local eth_account key.
    """

    def __init__(self, account):
        self._account = account

    @classmethod
    def create(cls) -> "WalletSigner":
        return cls(Account.create())

    @classmethod
    def from_key(cls, private_key: str) -> "WalletSigner":
        return cls(Account.from_key(private_key))

    @property
    def address(self) -> str:
        return self._account.address

    def sign(self, text: str) -> str:
        signed = self._account.sign_message(encode_defunct(text=text))
        return "0x" + bytes(signed.signature).hex()

    def signed_message(self, kind: str, timestamp_ms: Optional[int] = None, **fields: str) -> dict:
        """Request envelope {address, signature, message} for `kind`."""
        ts = now_millis() if timestamp_ms is None else timestamp_ms
        fields.setdefault("address", self.address)
        text = build_message(kind, ts, **fields)
        return {"address": self.address, "signature": self.sign(text), "message": text}
