"""
Tests for the keyring credential store.
"""
from unittest.mock import patch

from keyring.errors import KeyringError, PasswordDeleteError

from watch_uploader.credentials import KeyringCredentialStore


def test_get_returns_bytes():
    with patch('watch_uploader.credentials.keyring.get_password', return_value='{"k": 1}') as get:
        assert KeyringCredentialStore("svc", "acct").get() == b'{"k": 1}'
    get.assert_called_once_with("svc", "acct")


def test_get_missing_entry_is_none():
    with patch('watch_uploader.credentials.keyring.get_password', return_value=None):
        assert KeyringCredentialStore().get() is None


def test_get_unreadable_backend_is_none():
    with patch('watch_uploader.credentials.keyring.get_password', side_effect=KeyringError("locked")):
        assert KeyringCredentialStore().get() is None


def test_put_stores_text():
    with patch('watch_uploader.credentials.keyring.set_password') as set_password:
        KeyringCredentialStore("svc", "acct").put(b'{"k": 1}')
    set_password.assert_called_once_with("svc", "acct", '{"k": 1}')


def test_delete_reports_missing_entry():
    with patch('watch_uploader.credentials.keyring.delete_password', side_effect=PasswordDeleteError("none")):
        assert not KeyringCredentialStore().delete()

    with patch('watch_uploader.credentials.keyring.delete_password'):
        assert KeyringCredentialStore().delete()
