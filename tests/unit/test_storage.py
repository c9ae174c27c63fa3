"""Local storage backend."""

import re
import uuid

from documind.services.storage import StorageService, document_key


def test_document_key_is_user_scoped():
    user_id = uuid.uuid4()

    assert re.fullmatch(rf"{user_id}/\d+\.pdf", document_key(user_id))


def test_local_upload_and_delete(tmp_path):
    storage = StorageService(use_local=True, local_path=str(tmp_path))

    url = storage.upload(b"%PDF-1.4", "user/1.pdf")

    assert url.startswith("file://")
    assert (tmp_path / "user" / "1.pdf").read_bytes() == b"%PDF-1.4"
    assert storage.delete("user/1.pdf") is True
    assert not (tmp_path / "user" / "1.pdf").exists()
    assert storage.delete("user/1.pdf") is False
