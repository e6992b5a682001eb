# memberhub/audit/audit_logger.py

import base64
import hashlib
import json
import logging
import os
import threading
from datetime import datetime, timezone

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

logger = logging.getLogger(__name__)

# Append-only audit trail: JSON lines with hash chaining and Ed25519 signatures.
# Logging is best-effort and never interrupts the operation being audited.
# One writer per log directory: the lock orders writers within this process only.


class AuditLogger:
    def __init__(self, log_dir='logs', key_file=None):
        self.log_dir = log_dir
        self.log_file = os.path.join(log_dir, 'audit.log')
        self.key_file = key_file or os.path.join(log_dir, 'audit_signing_key.pem')
        self.previous_hash = None
        self._lock = threading.Lock()

        os.makedirs(log_dir, exist_ok=True)

        self.signing_key = self._load_signing_key()
        self._load_previous_hash()

    def _load_signing_key(self):
        """Reuse the PEM key on disk so entries from earlier runs still verify."""
        if os.path.exists(self.key_file):
            with open(self.key_file, 'rb') as f:
                return serialization.load_pem_private_key(f.read(), password=None)

        private_key = Ed25519PrivateKey.generate()
        pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        fd = os.open(self.key_file, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, 'wb') as f:
            f.write(pem)
        logger.info("Created audit signing key at %s", self.key_file)
        return private_key

    def _load_previous_hash(self):
        if os.path.exists(self.log_file):
            with open(self.log_file, 'r') as f:
                lines = [line for line in f if line.strip()]
                if lines:
                    try:
                        last_entry = json.loads(lines[-1])
                        self.previous_hash = last_entry.get('hash')
                    except json.JSONDecodeError:
                        self.previous_hash = None

    def log(self, action, entity_type, entity_id, user_id=None, ip_hash=None, metadata=None):
        with self._lock:
            try:
                log_entry = {
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "action": action,
                    "entity": entity_type,
                    "entity_id": entity_id,
                    "user_id": user_id,
                    "ip_hash": ip_hash,
                    "metadata": metadata or {},
                    "previous_hash": self.previous_hash,
                }
                entry_json = json.dumps(log_entry, sort_keys=True, default=str)
                entry_hash = hashlib.sha256(entry_json.encode()).hexdigest()
                log_entry['hash'] = entry_hash

                signature = self.signing_key.sign(entry_json.encode())
                log_entry['signature'] = base64.b64encode(signature).decode()

                with open(self.log_file, 'a') as f:
                    f.write(json.dumps(log_entry, default=str) + "\n")

                self.previous_hash = entry_hash
            except Exception:
                logger.exception("Audit log write failed for %s %s %s", action, entity_type, entity_id)

    def list_entries(self, action=None, entity=None, user_id=None, limit=50):
        """Newest-first entries, optionally filtered."""
        if not os.path.exists(self.log_file):
            return []
        entries = []
        with open(self.log_file, 'r') as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if action and entry.get('action') != action:
                    continue
                if entity and entry.get('entity') != entity:
                    continue
                if user_id and entry.get('user_id') != user_id:
                    continue
                entries.append(entry)
        entries.reverse()
        return entries[:limit]

    def verify_log_integrity(self):
        if not os.path.exists(self.log_file):
            return True
        public_key = self.signing_key.public_key()
        previous_hash = None
        with open(self.log_file, 'r') as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    log_entry = json.loads(line)
                    signature = base64.b64decode(log_entry['signature'])
                except (json.JSONDecodeError, KeyError, ValueError):
                    return False
                if log_entry.get('previous_hash') != previous_hash:
                    return False
                entry_copy = dict(log_entry)
                entry_copy.pop('signature')
                entry_hash = entry_copy.pop('hash', None)
                entry_json = json.dumps(entry_copy, sort_keys=True, default=str).encode()
                if hashlib.sha256(entry_json).hexdigest() != entry_hash:
                    return False
                try:
                    public_key.verify(signature, entry_json)
                except InvalidSignature:
                    return False
                previous_hash = entry_hash
        return True
