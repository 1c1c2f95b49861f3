"""
Tests for signed-message authentication.

Tests cover:
- Personal-sign signature recovery
- Exact template matching per message kind
- Freshness window boundaries
- The combined authentication gate
"""

import pytest

import auth
from auth import (
    AUTH,
    DAILY,
    GAME,
    REFERRAL,
    WalletSigner,
    authenticate,
    build_message,
    is_fresh,
    parse_message,
    verify_signature,
)
from errors import AuthenticationError, ExpiredError, FormatError

ADDR = "0x" + "ab" * 20
REF = "0x" + "cd" * 20
TS = 1_700_000_000_000


class TestVerifySignature:
    """Tests for signer recovery."""

    def test_valid_signature_matches_signer(self, signer):
        text = build_message(AUTH, TS, address=signer.address)
        assert verify_signature(text, signer.sign(text), signer.address)

    def test_address_compared_case_insensitively(self, signer):
        text = build_message(AUTH, TS, address=signer.address)
        sig = signer.sign(text)
        assert verify_signature(text, sig, signer.address.lower())
        assert verify_signature(text, sig, signer.address.upper().replace("0X", "0x"))

    def test_other_address_rejected(self, signer, other_signer):
        text = build_message(AUTH, TS, address=signer.address)
        assert not verify_signature(text, signer.sign(text), other_signer.address)

    def test_signature_over_different_text_rejected(self, signer):
        text = build_message(AUTH, TS, address=signer.address)
        sig = signer.sign(text)
        assert not verify_signature(text + "1", sig, signer.address)

    @pytest.mark.parametrize("bad", ["", "0x", "0xdead", "not-a-signature", "0x" + "00" * 65, "0x" + "zz" * 65])
    def test_malformed_signature_is_not_an_error(self, signer, bad):
        text = build_message(AUTH, TS, address=signer.address)
        assert verify_signature(text, bad, signer.address) is False

    def test_signer_from_fixed_key_is_deterministic(self):
        key = "0x" + "11" * 32
        a, b = WalletSigner.from_key(key), WalletSigner.from_key(key)
        assert a.address == b.address
        assert a.sign("hello") == b.sign("hello")


class TestParseMessage:
    """Tests for template matching and timestamp extraction."""

    def test_auth_template(self):
        parsed = parse_message(f"RockChain auth: {ADDR} @ {TS}", AUTH)
        assert parsed.timestamp_ms == TS
        assert parsed.address == ADDR

    def test_daily_template(self):
        parsed = parse_message(f"RockChain daily claim: {ADDR.upper().replace('0X', '0x')} @ {TS}", DAILY)
        assert parsed.address == ADDR
        assert parsed.timestamp_ms == TS

    def test_referral_template(self):
        parsed = parse_message(f"RockChain referral claim: {ADDR} from {REF} @ {TS}", REFERRAL)
        assert parsed.address == ADDR
        assert parsed.referrer == REF

    @pytest.mark.parametrize("result", ["win", "loss", "draw"])
    def test_game_template(self, result):
        parsed = parse_message(f"RockChain game result: 2048 {result} @ {TS}", GAME)
        assert parsed.game_id == "2048"
        assert parsed.result == result
        assert parsed.address is None

    @pytest.mark.parametrize("message, kind", [
        (f"rockchain auth: {ADDR} @ {TS}", AUTH),
        (f"RockChain Auth: {ADDR} @ {TS}", AUTH),
        (f"RockChain auth:  {ADDR} @ {TS}", AUTH),
        (f"RockChain auth: {ADDR} @ {TS} ", AUTH),
        (f" RockChain auth: {ADDR} @ {TS}", AUTH),
        (f"RockChain auth: {ADDR} @ {TS}\n", AUTH),
        (f"RockChain auth: {ADDR}@{TS}", AUTH),
        (f"RockChain auth: {ADDR[:-1]} @ {TS}", AUTH),
        (f"RockChain auth: {ADDR}0 @ {TS}", AUTH),
        (f"RockChain auth: {ADDR[2:]} @ {TS}", AUTH),
        (f"RockChain auth: 0x{'g' * 40} @ {TS}", AUTH),
        (f"RockChain auth: {ADDR} @ -{TS}", AUTH),
        (f"RockChain auth: {ADDR} @ {TS}.5", AUTH),
        (f"RockChain auth: {ADDR} @ ", AUTH),
        (f"OtherApp auth: {ADDR} @ {TS}", AUTH),
        (f"RockChain daily claim: {ADDR} @ {TS}", AUTH),
        (f"RockChain auth: {ADDR} @ {TS}", DAILY),
        (f"RockChain referral claim: {ADDR} @ {TS}", REFERRAL),
        (f"RockChain referral claim: {ADDR} from {REF[:-2]} @ {TS}", REFERRAL),
        (f"RockChain game result: poker win @ {TS}", GAME),
        (f"RockChain game result: RPS win @ {TS}", GAME),
        (f"RockChain game result: rps lose @ {TS}", GAME),
        (f"RockChain game result: rps Win @ {TS}", GAME),
        (f"RockChain game result: rps  win @ {TS}", GAME),
        (f"RockChain game result: rps win {TS}", GAME),
    ])
    def test_rejects_anything_but_the_exact_template(self, message, kind):
        with pytest.raises(FormatError):
            parse_message(message, kind)

    def test_unicode_digits_rejected(self):
        with pytest.raises(FormatError):
            parse_message(f"RockChain auth: {ADDR} @ ١٢٣", AUTH)

    def test_timestamp_digit_count_bounded(self):
        assert parse_message(f"RockChain auth: {ADDR} @ {'9' * 16}", AUTH).timestamp_ms == int("9" * 16)
        for digits in (17, 5000):
            with pytest.raises(FormatError):
                parse_message(f"RockChain auth: {ADDR} @ {'9' * digits}", AUTH)

    def test_unknown_kind_is_a_programming_error(self):
        with pytest.raises(ValueError):
            parse_message(f"RockChain auth: {ADDR} @ {TS}", "withdraw")


class TestFreshness:
    """Tests for the freshness window."""

    @pytest.mark.parametrize("gap", [0, 1, 150_000, 300_000])
    def test_fresh_within_window(self, gap):
        assert is_fresh(TS, TS + gap)

    @pytest.mark.parametrize("gap", [300_001, 3_600_000, TS])
    def test_stale_beyond_window(self, gap):
        assert not is_fresh(TS, TS + gap)

    def test_small_future_skew_tolerated(self):
        assert is_fresh(TS + 30_000, TS)

    def test_far_future_rejected(self):
        assert not is_fresh(TS + 30_001, TS)
        assert not is_fresh(TS + 86_400_000, TS)


class TestAuthenticate:
    """Tests for the combined gate."""

    def test_valid_auth_message(self, signer):
        req = signer.signed_message(AUTH, timestamp_ms=TS)
        signed = authenticate(req["address"], req["signature"], req["message"], AUTH, now_ms=TS + 1000)
        assert signed.address == signer.address.lower()

    def test_wrong_signer(self, signer, other_signer):
        req = signer.signed_message(AUTH, timestamp_ms=TS)
        with pytest.raises(AuthenticationError, match="Invalid signature"):
            authenticate(other_signer.address, req["signature"], req["message"], AUTH, now_ms=TS)

    def test_signature_for_one_purpose_not_accepted_for_another(self, signer):
        req = signer.signed_message(DAILY, timestamp_ms=TS)
        with pytest.raises(FormatError):
            authenticate(req["address"], req["signature"], req["message"], AUTH, now_ms=TS)

    def test_message_for_another_address_rejected(self, signer):
        # signer signs a daily claim naming somebody else's wallet
        text = build_message(DAILY, TS, address=ADDR)
        with pytest.raises(FormatError, match="does not match"):
            authenticate(signer.address, signer.sign(text), text, DAILY, now_ms=TS)

    def test_referrer_must_match_request(self, signer):
        req = signer.signed_message(REFERRAL, timestamp_ms=TS, referrer=REF)
        with pytest.raises(FormatError):
            authenticate(req["address"], req["signature"], req["message"], REFERRAL, now_ms=TS, referrer=ADDR)
        signed = authenticate(req["address"], req["signature"], req["message"], REFERRAL, now_ms=TS, referrer=REF.upper().replace("0X", "0x"))
        assert signed.referrer == REF

    def test_game_fields_must_match_request(self, signer):
        req = signer.signed_message(GAME, timestamp_ms=TS, game_id="rps", result="loss")
        with pytest.raises(FormatError):
            authenticate(req["address"], req["signature"], req["message"], GAME, now_ms=TS, game_id="rps", result="win")
        with pytest.raises(FormatError):
            authenticate(req["address"], req["signature"], req["message"], GAME, now_ms=TS, game_id="dice", result="loss")

    def test_expired(self, signer):
        req = signer.signed_message(AUTH, timestamp_ms=TS)
        with pytest.raises(ExpiredError, match="Message expired"):
            authenticate(req["address"], req["signature"], req["message"], AUTH, now_ms=TS + 300_001)

    def test_signature_checked_before_format(self, signer):
        with pytest.raises(AuthenticationError):
            authenticate(signer.address, "0xdead", "garbage", AUTH, now_ms=TS)

    def test_app_name_is_configurable(self, signer, monkeypatch):
        monkeypatch.setattr(auth.config, "APP_NAME", "Arcade")
        monkeypatch.setattr(auth, "TEMPLATES", auth._templates("Arcade"))
        req = signer.signed_message(AUTH, timestamp_ms=TS)
        assert req["message"].startswith("Arcade auth: ")
        authenticate(req["address"], req["signature"], req["message"], AUTH, now_ms=TS)
