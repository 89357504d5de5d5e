import base64
import hashlib
import hmac

import pytest

from pgproto.auth import md5_hash
from pgproto.password import md5, scram_sha_256
from pgproto.sasl import ChannelBinding, ScramError, ScramSha256

SALT = bytes(range(16))


def _split_verifier(verifier):
    mechanism, rest = verifier.split("$", 1)
    iter_salt, keys = rest.split("$")
    iterations, salt_b64 = iter_salt.split(":")
    stored_b64, server_b64 = keys.split(":")
    return mechanism, iterations, salt_b64, stored_b64, server_b64


def test_scram_verifier_layout():
    password = b"password"
    mechanism, iterations, salt_b64, stored_b64, server_b64 = _split_verifier(
        scram_sha_256(password, SALT)
    )
    assert mechanism == "SCRAM-SHA-256"
    assert iterations == "4096"
    assert base64.b64decode(salt_b64) == SALT
    assert len(base64.b64decode(stored_b64)) == 32
    assert len(base64.b64decode(server_b64)) == 32


def test_scram_is_deterministic_for_fixed_salt():
    password = b"password"
    first = scram_sha_256(password, SALT)
    second = scram_sha_256(password, SALT)
    assert first == second
    assert _split_verifier(first)[2] == "AAECAwQFBgcICQoLDA0ODw=="
    assert first.startswith("SCRAM-SHA-256$4096:AAECAwQFBgcICQoLDA0ODw==$")


def test_scram_random_salt_differs():
    password = b"password"
    first = _split_verifier(scram_sha_256(password))
    second = _split_verifier(scram_sha_256(password))
    assert len(base64.b64decode(first[2])) == 16
    assert first[2] != second[2]


def test_scram_rejects_wrong_salt_length():
    password = b"password"
    with pytest.raises(ValueError):
        scram_sha_256(password, b"short")


def test_scram_applies_saslprep():
    # A non-breaking space is mapped to an ordinary space by SASLprep.
    assert scram_sha_256("foo\u00a0bar".encode("utf-8"), SALT) == scram_sha_256(b"foo bar", SALT)


def test_scram_accepts_invalid_utf8():
    mechanism, _, _, stored_b64, _ = _split_verifier(scram_sha_256(b"\xff\xfe", SALT))
    assert mechanism == "SCRAM-SHA-256"
    assert len(base64.b64decode(stored_b64)) == 32


def _run_exchange(password, verifier):
    _, iterations, salt_b64, stored_b64, server_b64 = _split_verifier(verifier)
    stored_key = base64.b64decode(stored_b64)
    server_key = base64.b64decode(server_b64)

    client = ScramSha256(password, ChannelBinding.unsupported(), "clientnonce")
    server_first = f"r=clientnonceservernonce,s={salt_b64},i={iterations}"
    client.update(server_first.encode())

    without_proof, proof_b64 = client.message().decode().rsplit(",p=", 1)
    auth_message = f"n=,r=clientnonce,{server_first},{without_proof}".encode()
    signature = hmac.new(stored_key, auth_message, hashlib.sha256).digest()
    client_key = bytes(a ^ b for a, b in zip(base64.b64decode(proof_b64), signature))
    server_signature = hmac.new(server_key, auth_message, hashlib.sha256).digest()
    return client, stored_key, client_key, server_signature


def test_verifier_authenticates_scram_client():
    password = b"password"
    client, stored_key, client_key, server_signature = _run_exchange(
        password, scram_sha_256(password, SALT)
    )
    assert hashlib.sha256(client_key).digest() == stored_key
    client.finish(b"v=" + base64.b64encode(server_signature))
    with pytest.raises(ScramError):
        client.message()


def test_verifier_rejects_other_password():
    password = b"password"
    other = b"secret"
    _, stored_key, client_key, _ = _run_exchange(other, scram_sha_256(password, SALT))
    assert hashlib.sha256(client_key).digest() != stored_key
    assert len(client_key) == 32


def test_md5_of_empty_input():
    assert md5(b"", "") == "md5d41d8cd98f00b204e9800998ecf8427e"


def test_md5_salts_with_username():
    password = b"password"
    result = md5(password, "md5_user")
    assert result.startswith("md5")
    assert len(result) == 35
    assert result != md5(password, "other_user")


def test_md5_concatenates_password_and_username():
    assert md5(b"pass", "word") == md5(b"password", "")


def test_md5_matches_authentication_hash_input():
    password = b"password"
    salt = bytes([0x2A, 0x3D, 0x8F, 0xE0])
    assert md5_hash(b"md5_user", password, salt) == "md562af4dd09bbb41884907a838a3233294"
    assert md5(password, "md5_user") != md5_hash(b"md5_user", password, salt)