"""Integration tests for certify and verify endpoints."""

import base64
import json

import pytest

from certchain.crypto.hashing import sha256_hex

CONTENT = b"0123456789"
CONTENT_HASH = sha256_hex(CONTENT)


async def certify(client, content=CONTENT, filename="contract.pdf", **data):
    return await client.post(
        "/certify",
        files={"file": (filename, content, "application/pdf")},
        data=data,
    )


def encode(payload: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")


class TestHealthEndpoint:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["service"] == "certchain"


class TestCertifyEndpoint:
    async def test_certify(self, client, chain, signer):
        resp = await certify(client)
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["hash"] == CONTENT_HASH
        assert data["txHash"] == chain.anchored["0x" + CONTENT_HASH]
        assert data["explorerUrl"].endswith(data["txHash"])
        assert data["docType"] == "PDF"
        assert signer.verify(CONTENT_HASH, data["signature"])
        qr = data["qrPayload"]
        assert qr["hash"] == CONTENT_HASH
        assert qr["sig"] == data["signature"]
        assert qr["ts"] == data["timestamp"]
        assert qr["iss"] == "CertiFi"
        assert qr["docType"] == "PDF"

    async def test_repeat_is_conflict(self, client, chain):
        await certify(client)
        resp = await certify(client)
        assert resp.status_code == 409
        data = resp.json()
        assert data["success"] is False
        assert data["code"] == "ALREADY_CERTIFIED"
        assert data["hash"] == CONTENT_HASH
        assert len(chain.writes) == 1

    async def test_missing_file(self, client):
        resp = await client.post("/certify", data={"document_id": "doc-1"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "FILE_REQUIRED"

    async def test_bad_requested_tasks(self, client):
        resp = await certify(client, requested_tasks="[broken")
        assert resp.status_code == 400

    async def test_chain_failure(self, client, chain):
        chain.fail_with = RuntimeError("replacement transaction underpriced")
        resp = await certify(client)
        assert resp.status_code == 502
        data = resp.json()
        assert data["code"] == "CHAIN_WRITE_FAILED"
        assert data["details"]["shortMessage"] == "replacement transaction underpriced"

    async def test_analysis_and_storage(self, app, client, chain, storage, analysis):
        from certchain.deps import set_analysis_client, set_storage_client
        set_storage_client(storage)
        set_analysis_client(analysis)

        resp = await certify(client, document_id="doc-9", requested_tasks="classify,ocr")
        assert resp.status_code == 200
        data = resp.json()
        assert data["analysis"] == {"classification": "invoice", "confidence": 0.97}
        assert data["fileKey"].startswith("certificates/")
        assert data["fileUrl"].startswith("https://storage.test/certificates/")
        assert analysis.calls[0]["document_id"] == "doc-9"
        assert analysis.calls[0]["requested_tasks"] == ["classify", "ocr"]

    async def test_analysis_failure(self, app, client, chain):
        from certchain.deps import set_analysis_client
        from tests.fakes import FakeAnalysisClient
        set_analysis_client(FakeAnalysisClient(fail=True))

        resp = await certify(client)
        assert resp.status_code == 502
        assert resp.json()["code"] == "ANALYSIS_FAILED"
        assert chain.writes == []


class TestVerifyEndpoint:
    async def test_unknown_hash(self, client):
        resp = await client.get("/verify", params={"hash": "cd" * 32})
        assert resp.status_code == 200
        data = resp.json()
        assert data["verified"] is False
        assert data["checks"]["onChain"] is False
        assert data["checks"]["dbExists"] is False
        assert data["certificate"] is None

    async def test_certified_hash(self, client):
        certified = (await certify(client)).json()
        resp = await client.get("/verify", params={"hash": CONTENT_HASH})
        data = resp.json()
        assert data["verified"] is True
        assert data["checks"]["onChain"] is True
        assert data["checks"]["dbExists"] is True
        assert data["checks"]["signature"] is True
        assert data["certificate"]["txHash"] == certified["txHash"]
        assert data["certificate"]["docType"] == "PDF"
        assert "signature" not in data["certificate"]

    async def test_qr_payload(self, client):
        certified = (await certify(client)).json()
        resp = await client.get("/verify", params={"p": encode(certified["qrPayload"])})
        assert resp.status_code == 200
        data = resp.json()
        assert data["verified"] is True
        assert data["qrPayload"]["sig"] == certified["signature"]

    async def test_forged_signature(self, client, signer):
        certified = (await certify(client)).json()
        forged = dict(certified["qrPayload"], sig=signer.sign("ef" * 32))
        data = (await client.get("/verify", params={"p": encode(forged)})).json()
        assert data["checks"]["signature"] is False
        assert data["verified"] is False

    async def test_bad_payload(self, client):
        resp = await client.get("/verify", params={"p": "!!!"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_PAYLOAD"

    async def test_non_ascii_payload(self, client):
        resp = await client.get("/verify", params={"p": "\u00e9"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_PAYLOAD"

    async def test_missing_params(self, client):
        resp = await client.get("/verify")
        assert resp.status_code == 400
        assert resp.json()["code"] == "HASH_REQUIRED"

    async def test_malformed_hash(self, client):
        resp = await client.get("/verify", params={"hash": "xyz"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_HASH"


class TestVerifyUploadEndpoint:
    async def test_matching_file(self, client):
        await certify(client)
        resp = await client.post("/verify", files={"file": ("contract.pdf", CONTENT, "application/pdf")})
        assert resp.status_code == 200
        data = resp.json()
        assert data["verified"] is True
        assert data["match"] is True
        assert data["hash"] == CONTENT_HASH

    async def test_altered_file(self, client):
        await certify(client)
        resp = await client.post("/verify", files={"file": ("contract.pdf", b"0123456788", "application/pdf")})
        data = resp.json()
        assert data["verified"] is False
        assert data["match"] is False
        assert data["error"] == "Certificate not found"

    async def test_claimed_hash_mismatch(self, client):
        await certify(client)
        resp = await client.post(
            "/verify",
            files={"file": ("contract.pdf", CONTENT, "application/pdf")},
            data={"hash": "cd" * 32},
        )
        data = resp.json()
        assert data["verified"] is True
        assert data["claimedHashMatch"] is False

    async def test_file_settles_unparseable_hash(self, client):
        await certify(client)
        resp = await client.post(
            "/verify",
            files={"file": ("contract.pdf", CONTENT, "application/pdf")},
            data={"hash": "nothex"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["match"] is True
        assert data["verified"] is True
        assert data["claimedHashMatch"] is False

    async def test_hash_only(self, client):
        await certify(client)
        resp = await client.post("/verify", data={"hash": CONTENT_HASH})
        data = resp.json()
        assert data["verified"] is False
        assert data["certificate"] is not None

    async def test_nothing_supplied(self, client):
        resp = await client.post("/verify", data={})
        assert resp.status_code == 400
        assert resp.json()["code"] == "FILE_OR_HASH_REQUIRED"
