import base64
import json
import os

import pytest

from memberhub.audit.audit_logger import AuditLogger


@pytest.fixture
def temp_log_dir(tmp_path):
    """Create a temporary directory for test logs."""
    log_dir = tmp_path / "test_logs"
    log_dir.mkdir()
    return str(log_dir)


@pytest.fixture
def audit_logger(temp_log_dir):
    """Create an AuditLogger instance with a temporary log directory."""
    return AuditLogger(log_dir=temp_log_dir)


def test_init_creates_log_directory(temp_log_dir):
    """Test that initializing AuditLogger creates the log directory."""
    os.rmdir(temp_log_dir)
    AuditLogger(log_dir=temp_log_dir)
    assert os.path.exists(temp_log_dir)


def test_log_basic(audit_logger, temp_log_dir):
    """An entry carries action, entity and actor plus hash and signature."""
    audit_logger.log("LOGIN", "User", "user-1", user_id="user-1", ip_hash="abc", metadata={"userAgent": "pytest"})

    log_file = os.path.join(temp_log_dir, 'audit.log')
    with open(log_file, 'r') as f:
        log_entry = json.loads(f.readline())

    assert log_entry['action'] == "LOGIN"
    assert log_entry['entity'] == "User"
    assert log_entry['entity_id'] == "user-1"
    assert log_entry['user_id'] == "user-1"
    assert log_entry['ip_hash'] == "abc"
    assert log_entry['metadata'] == {"userAgent": "pytest"}
    assert 'hash' in log_entry
    assert 'signature' in log_entry
    assert log_entry['previous_hash'] is None  # First entry


def test_hash_chaining(audit_logger):
    """Each entry points at the hash of the one before it."""
    audit_logger.log("EVENT1", "User", "1")
    first_hash = audit_logger.previous_hash
    audit_logger.log("EVENT2", "User", "2")

    with open(audit_logger.log_file, 'r') as f:
        lines = f.readlines()
    assert json.loads(lines[1])['previous_hash'] == first_hash


def test_signature_verification(audit_logger):
    audit_logger.log("TEST_EVENT", "Election", "e-1")

    with open(audit_logger.log_file, 'r') as f:
        log_entry = json.loads(f.readline())

    entry_copy = dict(log_entry)
    signature = entry_copy.pop('signature')
    entry_copy.pop('hash')
    entry_json = json.dumps(entry_copy, sort_keys=True, default=str).encode()

    # Raises if the signature is invalid
    audit_logger.signing_key.public_key().verify(base64.b64decode(signature), entry_json)


def test_verify_log_integrity_valid(audit_logger):
    audit_logger.log("EVENT1", "User", "1")
    audit_logger.log("EVENT2", "User", "2")
    assert audit_logger.verify_log_integrity() is True


def test_verify_log_integrity_tampered(audit_logger):
    audit_logger.log("EVENT1", "User", "1")
    with open(audit_logger.log_file, 'a') as f:
        f.write('{"tampered": true}\n')
    assert audit_logger.verify_log_integrity() is False


def test_load_previous_hash(temp_log_dir):
    """A new logger continues the chain of an existing file."""
    logger1 = AuditLogger(log_dir=temp_log_dir)
    logger1.log("EVENT1", "User", "1")
    logger2 = AuditLogger(log_dir=temp_log_dir)
    assert logger2.previous_hash == logger1.previous_hash


def test_list_entries_newest_first_with_filters(audit_logger):
    audit_logger.log("LOGIN", "User", "1", user_id="1")
    audit_logger.log("LOGOUT", "User", "1", user_id="1")
    audit_logger.log("LOGIN", "User", "2", user_id="2")

    entries = audit_logger.list_entries()
    assert [e['action'] for e in entries] == ["LOGIN", "LOGOUT", "LOGIN"]
    assert entries[0]['user_id'] == "2"

    assert len(audit_logger.list_entries(action="LOGIN")) == 2
    assert len(audit_logger.list_entries(user_id="1")) == 2
    assert len(audit_logger.list_entries(limit=1)) == 1


def test_error_handling(audit_logger, monkeypatch):
    """A failing write is logged, never raised."""
    def mock_open(*args, **kwargs):
        raise PermissionError("Access denied")

    monkeypatch.setattr("builtins.open", mock_open)
    audit_logger.log("ERROR_TEST", "User", "1")


def test_signing_key_is_persisted(temp_log_dir):
    audit_logger = AuditLogger(log_dir=temp_log_dir)
    key_file = os.path.join(temp_log_dir, 'audit_signing_key.pem')

    assert os.path.exists(key_file)
    assert os.stat(key_file).st_mode & 0o777 == 0o600
    assert audit_logger.key_file == key_file


def test_entries_verify_after_restart(temp_log_dir):
    """A logger built later on the same directory keeps the key and the chain."""
    first = AuditLogger(log_dir=temp_log_dir)
    first.log("LOGIN", "User", "1")
    first.log("LOGOUT", "User", "1")

    second = AuditLogger(log_dir=temp_log_dir)
    second.log("LOGIN", "User", "2")

    assert second.verify_log_integrity() is True
    assert first.verify_log_integrity() is True


def test_explicit_key_file(tmp_path):
    key_file = str(tmp_path / "signing.pem")
    first = AuditLogger(log_dir=str(tmp_path / "a"), key_file=key_file)
    second = AuditLogger(log_dir=str(tmp_path / "b"), key_file=key_file)

    signature = first.signing_key.sign(b"payload")
    second.signing_key.public_key().verify(signature, b"payload")


def test_concurrent_writes_keep_one_chain(audit_logger):
    import threading

    def write_many(worker):
        for i in range(50):
            audit_logger.log("EVENT", "User", f"{worker}-{i}")

    threads = [threading.Thread(target=write_many, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(audit_logger.list_entries(limit=1000)) == 400
    assert audit_logger.verify_log_integrity() is True
