import pytest

from mergeguard.errors import VerificationError, VerificationFailure
from mergeguard.signature import verify_signature

from conftest import sign

SECRET = "test-secret"
PAYLOAD = "test payload"
SIGNATURE = "sha256=2f94a757d2246073e26781d117ce0183ebd87b4d66c460494376d5c37d71985b"


def rejection(header, secret=SECRET, body=PAYLOAD) -> VerificationFailure:
    with pytest.raises(VerificationError) as exc_info:
        verify_signature(header, secret, body)
    return exc_info.value.reason


def test_valid_signature():
    verify_signature(SIGNATURE, SECRET, PAYLOAD)
    verify_signature(SIGNATURE, SECRET, PAYLOAD.encode())


def test_sign_matches_known_signature():
    assert sign(SECRET, PAYLOAD) == SIGNATURE


def test_uppercase_digest_is_accepted():
    verify_signature(
        "sha256=" + SIGNATURE[len("sha256=") :].upper(), SECRET, PAYLOAD
    )


@pytest.mark.parametrize("position", [7, 20, len(SIGNATURE) - 1])
def test_altered_digit_is_mismatch(position):
    replacement = "0" if SIGNATURE[position] != "0" else "1"
    altered = SIGNATURE[:position] + replacement + SIGNATURE[position + 1 :]
    assert rejection(altered) == VerificationFailure.signature_mismatch


def test_wrong_secret_is_mismatch():
    assert rejection(sign("other-secret", PAYLOAD)) == (
        VerificationFailure.signature_mismatch
    )


def test_missing_header():
    assert rejection(None) == VerificationFailure.missing_header
    assert rejection("") == VerificationFailure.missing_header


@pytest.mark.parametrize(
    "header",
    [
        "sha256=invalid-signature",
        "sha1=2f94a757d2246073e26781d117ce0183ebd87b4d66c460494376d5c37d71985b",
        "2f94a757d2246073e26781d117ce0183ebd87b4d66c460494376d5c37d71985b",
        "sha256=2f94a757",
        "sha256=2f94a757d2246073e26781d117ce0183ebd87b4d66c460494376d5c37d71985",
        "sha256=2f94 a757 d2246073e26781d117ce0183ebd87b4d66c460494376d5c37d71985b",
        "sha256= 2f94a757d2246073e26781d117ce0183ebd87b4d66c460494376d5c37d71985b",
        "sha256=2f94a757d2246073e26781d117ce0183ebd87b4d66c460494376d5c37d71985b\n",
    ],
)
def test_malformed_header(header):
    assert rejection(header) == VerificationFailure.malformed_header


def test_rejection_message():
    with pytest.raises(VerificationError, match="Invalid webhook signature"):
        verify_signature(
            "sha256=0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef",
            SECRET,
            PAYLOAD,
        )


@pytest.mark.parametrize("header", [None, "", "sha256=invalid-signature", SIGNATURE])
@pytest.mark.parametrize("secret", [None, ""])
def test_no_secret_accepts_everything(header, secret):
    verify_signature(header, secret, PAYLOAD)
