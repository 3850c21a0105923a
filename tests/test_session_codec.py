import base64

import pytest

from archexam.core.errors import Expired, InvalidSignature, Malformed
from archexam.models.exam import Purpose
from archexam.services.session_codec import SessionCodec

T0 = 1_772_366_400
KEY = {10: "Ming", 2: ["A", "B"], 7: "Song"}


@pytest.fixture
def codec():
    return SessionCodec("unit-test-key")


def test_round_trip_preserves_session(codec):
    token = codec.encode(KEY, "u1", Purpose.QUALIFICATION, ttl=900, now=T0)
    session = codec.decode(token, now=T0 + 10)
    assert session.subject == "u1"
    assert session.purpose is Purpose.QUALIFICATION
    assert session.issued_at == T0
    assert session.expires_at == T0 + 900
    assert session.answer_key == KEY
    assert session.question_ids == [10, 2, 7]


def test_practice_token_has_no_subject(codec):
    token = codec.encode({1: "Tang"}, None, Purpose.PRACTICE, ttl=60, now=T0)
    session = codec.decode(token, now=T0)
    assert session.subject is None
    assert session.purpose is Purpose.PRACTICE


def test_token_does_not_expose_the_answer_key(codec):
    token = codec.encode({1: "Forbidden City"}, "u1", Purpose.QUALIFICATION, ttl=60, now=T0)
    assert b"Forbidden" not in base64.urlsafe_b64decode(token)
    assert "Forbidden" not in token


def test_any_flipped_byte_is_rejected_as_tampering(codec):
    token = codec.encode(KEY, "u1", Purpose.QUALIFICATION, ttl=900, now=T0)
    for i, ch in enumerate(token):
        forged = token[:i] + chr(ord(ch) ^ 0x01) + token[i + 1:]
        with pytest.raises(InvalidSignature):
            codec.decode(forged, now=T0)


@pytest.mark.parametrize("replacement", ["/", "+", "=", "A", "é"])
def test_any_replaced_character_is_rejected_as_tampering(codec, replacement):
    token = codec.encode(KEY, "u1", Purpose.QUALIFICATION, ttl=900, now=T0)
    for i in range(len(token)):
        if token[i] == replacement:
            continue
        with pytest.raises(InvalidSignature):
            codec.decode(token[:i] + replacement + token[i + 1:], now=T0)


def test_spliced_tokens_fail_authentication(codec):
    mine = codec.encode(KEY, "u1", Purpose.QUALIFICATION, ttl=900, now=T0)
    theirs = codec.encode({10: "Qing", 2: ["C"], 7: "Tang"}, "u2", Purpose.QUALIFICATION, ttl=900, now=T0)
    forged = theirs[:60] + mine[60:]
    with pytest.raises(InvalidSignature):
        codec.decode(forged, now=T0)


def test_other_key_is_rejected(codec):
    token = SessionCodec("another-key").encode(KEY, "u1", Purpose.QUALIFICATION, ttl=900, now=T0)
    with pytest.raises(InvalidSignature):
        codec.decode(token, now=T0)


def test_previous_key_still_verifies_during_rotation():
    old = SessionCodec("old-key")
    token = old.encode(KEY, "u1", Purpose.PRACTICE, ttl=900, now=T0)
    assert SessionCodec("new-key", ["old-key"]).decode(token, now=T0).answer_key == KEY
    with pytest.raises(InvalidSignature):
        SessionCodec("new-key").decode(token, now=T0)


def test_expiry_is_inclusive_of_the_last_second(codec):
    token = codec.encode(KEY, "u1", Purpose.QUALIFICATION, ttl=900, now=T0)
    assert codec.decode(token, now=T0 + 900).expires_at == T0 + 900
    with pytest.raises(Expired):
        codec.decode(token, now=T0 + 901)


def test_expired_even_with_valid_signature(codec):
    token = codec.encode(KEY, "u1", Purpose.QUALIFICATION, ttl=1, now=T0 - 3600)
    with pytest.raises(Expired):
        codec.decode(token, now=T0)


@pytest.mark.parametrize("token", ["", "garbage", "gAAAAAB", "x" * 101, None, 42])
def test_unparseable_tokens_are_malformed(codec, token):
    with pytest.raises(Malformed):
        codec.decode(token, now=T0)


@pytest.mark.parametrize("plaintext", [b"not json", b'{"v": 2}', b'{"v": 1, "sub": 5, "pur": "practice", "iat": 0, "exp": 9, "key": []}'])
def test_authenticated_but_unreadable_payload_is_malformed(codec, plaintext):
    token = codec._fernet.encrypt(plaintext).decode("ascii")
    with pytest.raises(Malformed):
        codec.decode(token, now=T0)


def test_keys_of_any_length_are_accepted():
    for key in ("k", "x" * 500, b"\x00\xff raw bytes"):
        codec = SessionCodec(key)
        assert codec.decode(codec.encode(KEY, None, Purpose.PRACTICE, ttl=5, now=T0), now=T0).answer_key == KEY


def test_encode_rejects_bad_input(codec):
    with pytest.raises(ValueError):
        codec.encode(KEY, "u1", Purpose.QUALIFICATION, ttl=0, now=T0)
    with pytest.raises(ValueError):
        codec.encode({}, "u1", Purpose.QUALIFICATION, ttl=60, now=T0)
    with pytest.raises(ValueError):
        SessionCodec("")
