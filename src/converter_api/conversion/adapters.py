import base64
import json
import secrets
import uuid
from pathlib import Path

from argon2.exceptions import VerificationError, InvalidHashError
from argon2.low_level import Type, hash_secret, verify_secret

from .interfaces import HistoryGateway, SecurityGateway


class LocalHistoryStorage(HistoryGateway):
    """History records and converted files under DATA_DIR/history/{id}/."""

    def __init__(self, data_dir: str) -> None:
        self._base = Path(data_dir).resolve()

    def record_dir(self, record_id: str) -> str:
        # ids are uuid4 strings; anything else could escape the base dir
        try:
            uuid.UUID(record_id)
        except ValueError:
            raise FileNotFoundError("history record not found") from None
        return str(self._base / "history" / record_id)

    def save_record(self, record: dict[str, object]) -> None:
        record_id = str(record["id"])  # type: ignore[index]
        p = Path(self.record_dir(record_id)) / "record.json"
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("w", encoding="utf-8") as f:
            json.dump(record, f, ensure_ascii=False, indent=2)

    def load_record(self, record_id: str) -> dict[str, object]:
        p = Path(self.record_dir(record_id)) / "record.json"
        if not p.exists():
            raise FileNotFoundError("history record not found")
        with p.open("r", encoding="utf-8") as f:
            return json.load(f)

    def write_file(self, record_id: str, file_name: str, data: bytes) -> str:
        p = Path(self.record_dir(record_id)) / Path(file_name).name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        return str(p)

    def read_file(self, record_id: str, file_name: str) -> bytes:
        p = Path(self.record_dir(record_id)) / Path(file_name).name
        if not p.exists():
            raise FileNotFoundError("converted file no longer exists")
        return p.read_bytes()


class Argon2Security(SecurityGateway):
    """Capability tokens stored as argon2id PHC hashes."""

    def __init__(self, *, time_cost: int = 3, memory_cost: int = 65536) -> None:
        self._time_cost = time_cost
        self._memory_cost = memory_cost

    def new_token(self) -> str:
        raw = secrets.token_bytes(32)
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    def hash_token(self, token: str) -> str:
        phc_bytes = hash_secret(
            secret=self._b64url_to_bytes(token),
            salt=secrets.token_bytes(16),
            time_cost=self._time_cost,
            memory_cost=self._memory_cost,
            parallelism=1,
            hash_len=32,
            type=Type.ID,
        )
        # hash_secret returns the PHC string as bytes
        return phc_bytes.decode("utf-8")

    def verify(self, phc_hash: str, token: str) -> bool:
        if not phc_hash.startswith("$argon2"):
            return False
        try:
            raw = self._b64url_to_bytes(token)
            return verify_secret(phc_hash.encode("utf-8"), raw, Type.ID)
        except (VerificationError, InvalidHashError, ValueError):
            return False

    @staticmethod
    def _b64url_to_bytes(token: str) -> bytes:
        pad = "=" * (-len(token) % 4)
        return base64.urlsafe_b64decode(token + pad)
