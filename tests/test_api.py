from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.core.config import ALGORITHM, SECRET_KEY
from app.db.store import ITEMS, LOANS, PROFILES
from app.main import create_app
from app.services.container import Services
from tests.fakes import TODAY, make_item, make_loan, make_profile


def token_for(user_id, email=None, expires_in=timedelta(hours=1)):
    claims = {
        "sub": user_id,
        "email": email or f"{user_id}@sekolah.sch.id",
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def auth(user_id):
    return {"Authorization": f"Bearer {token_for(user_id)}"}


@pytest.fixture
def client(seeded_store):
    app = create_app(services=Services(seeded_store))
    return TestClient(app)


def test_health_is_public(client):
    response = client.get("/health/db")
    assert response.status_code == 200
    assert response.json()["status"] == "success"


def test_protected_path_requires_token(client):
    assert client.get("/api/v1/items/").status_code == 401
    expired = {"Authorization": f"Bearer {token_for('siswa-1', expires_in=timedelta(minutes=-5))}"}
    assert client.get("/api/v1/items/", headers=expired).status_code == 401


def test_signed_in_user_without_profile_is_forbidden(client):
    assert client.get("/api/v1/profiles/me", headers=auth("belum-daftar")).status_code == 403


def test_registration_then_verification(client, seeded_store):
    response = client.post(
        "/api/v1/profiles/register",
        json={"nama_lengkap": "Pak Budi", "role": "guru", "mata_pelajaran": "Las", "nip": "1987"},
        headers=auth("guru-baru"),
    )
    assert response.status_code == 201
    assert response.json()["status"] == "pending"
    assert response.json()["email"] == "guru-baru@sekolah.sch.id"

    # Belum terverifikasi: tidak boleh meminjam
    loan_payload = {
        "alat_id": "alat-1",
        "jumlah": 1,
        "keperluan": "Praktik",
        "tanggal_kembali_rencana": (TODAY + timedelta(days=1)).isoformat(),
    }
    assert client.post("/api/v1/loans/", json=loan_payload, headers=auth("guru-baru")).status_code == 403

    listed = client.get("/api/v1/verification/", params={"status": "pending"}, headers=auth("admin-1"))
    assert [p["id"] for p in listed.json()] == ["guru-baru"]

    approved = client.patch("/api/v1/verification/guru-baru/approve", headers=auth("admin-1"))
    assert approved.status_code == 200
    assert approved.json()["status"] == "disetujui"

    assert client.post("/api/v1/loans/", json=loan_payload, headers=auth("guru-baru")).status_code == 201


def test_reject_registrant_requires_reason(client, seeded_store):
    seeded_store.seed(PROFILES, make_profile("siswa-baru", status="pending"))

    response = client.patch("/api/v1/verification/siswa-baru/reject", json={"alasan": " "}, headers=auth("admin-1"))
    assert response.status_code == 400
    assert seeded_store.row(PROFILES, "siswa-baru")["status"] == "pending"

    response = client.patch(
        "/api/v1/verification/siswa-baru/reject", json={"alasan": "Data tidak valid"}, headers=auth("admin-1")
    )
    assert response.status_code == 200
    assert response.json()["alasan_penolakan"] == "Data tidak valid"


def test_admin_account_is_not_subject_to_verification(client, seeded_store):
    response = client.patch(
        "/api/v1/verification/admin-1/reject", json={"alasan": "Salah klik"}, headers=auth("admin-1")
    )
    assert response.status_code == 409
    assert seeded_store.row(PROFILES, "admin-1")["status"] == "disetujui"


def test_admin_endpoints_reject_borrowers(client):
    assert client.get("/api/v1/dashboard/admin", headers=auth("siswa-1")).status_code == 403
    assert client.patch("/api/v1/verification/siswa-1/approve", headers=auth("siswa-1")).status_code == 403
    assert client.post("/api/v1/items/", json={"nama": "X", "jumlah": 1}, headers=auth("siswa-1")).status_code == 403


def test_loan_lifecycle_over_http(client, seeded_store):
    created = client.post(
        "/api/v1/loans/",
        json={
            "alat_id": "alat-1",
            "jumlah": 3,
            "keperluan": "Praktik kelistrikan",
            "tanggal_kembali_rencana": (TODAY + timedelta(days=2)).isoformat(),
        },
        headers=auth("siswa-1"),
    )
    assert created.status_code == 201
    loan_id = created.json()["id"]

    stats = client.get("/api/v1/dashboard/admin", headers=auth("admin-1")).json()
    assert stats == {"pending_users": 0, "total_alat": 1, "pending_peminjaman": 1, "active_peminjaman": 0}

    approved = client.patch(f"/api/v1/loans/{loan_id}/approve", headers=auth("admin-1"))
    assert approved.status_code == 200
    assert seeded_store.row(ITEMS, "alat-1")["jumlah"] == 7

    rejected = client.patch(f"/api/v1/loans/{loan_id}/reject", headers=auth("admin-1"))
    assert rejected.status_code == 409

    returned = client.post(f"/api/v1/loans/{loan_id}/return", headers=auth("admin-1"))
    assert returned.status_code == 200
    assert returned.json()["status"] == "selesai"
    assert returned.json()["tanggal_kembali"] == TODAY.isoformat()
    assert seeded_store.row(ITEMS, "alat-1")["jumlah"] == 10

    history = client.get("/api/v1/dashboard/me", headers=auth("siswa-1")).json()
    assert history["total"] == 1
    assert history["selesai"] == 1
    assert history["riwayat"][0]["id"] == loan_id


def test_over_stock_request_is_a_bad_request(client, seeded_store):
    response = client.post(
        "/api/v1/loans/",
        json={
            "alat_id": "alat-1",
            "jumlah": 11,
            "keperluan": "Praktik",
            "tanggal_kembali_rencana": (TODAY + timedelta(days=1)).isoformat(),
        },
        headers=auth("siswa-1"),
    )
    assert response.status_code == 400
    assert "melebihi stok" in response.json()["detail"]
    assert seeded_store.tables.get(LOANS, {}) == {}


def test_batch_submission(client, seeded_store):
    seeded_store.seed(ITEMS, make_item("alat-2", jumlah=2))
    response = client.post(
        "/api/v1/loans/batch",
        json={
            "items": [{"alat_id": "alat-1", "jumlah": 2}, {"alat_id": "alat-2", "jumlah": 1}],
            "keperluan": "Praktik",
            "tanggal_kembali_rencana": (TODAY + timedelta(days=1)).isoformat(),
        },
        headers=auth("siswa-1"),
    )
    assert response.status_code == 201
    assert len(response.json()) == 2


def test_borrowers_only_see_their_own_requests(client, seeded_store):
    seeded_store.seed(PROFILES, make_profile("siswa-2"))
    seeded_store.seed(LOANS, make_loan("milik-1", user_id="siswa-1"))
    seeded_store.seed(LOANS, make_loan("milik-2", user_id="siswa-2"))

    mine = client.get("/api/v1/loans/", headers=auth("siswa-1")).json()
    assert [l["id"] for l in mine] == ["milik-1"]
    assert client.get("/api/v1/loans/milik-2", headers=auth("siswa-1")).status_code == 403
    everything = client.get("/api/v1/loans/", headers=auth("admin-1")).json()
    assert len(everything) == 2
    # Admin melihat siapa peminjamnya dan alat apa, tanpa query tambahan per baris
    assert {l["peminjam"]["nama_lengkap"] for l in everything} == {"Pengguna siswa-1", "Pengguna siswa-2"}
    assert {l["alat"]["nama"] for l in everything} == {"Kunci alat-1"}
    assert everything[0]["peminjam"]["kelas"] == "XI"


def test_item_crud_and_delete_guard(client, seeded_store):
    created = client.post(
        "/api/v1/items/",
        json={"nama": "Multimeter", "jumlah": 5, "kondisi": "baru", "status_stok": "aman", "kategori": "Ukur"},
        headers=auth("admin-1"),
    )
    assert created.status_code == 201
    item_id = created.json()["id"]

    bad = client.put(f"/api/v1/items/{item_id}", json={"nama": "Multimeter", "jumlah": -2}, headers=auth("admin-1"))
    assert bad.status_code == 400

    catalogue = client.get("/api/v1/items/", params={"available_only": "true"}, headers=auth("siswa-1")).json()
    assert {i["id"] for i in catalogue} == {"alat-1", item_id}

    seeded_store.seed(LOANS, make_loan(alat_id=item_id))
    assert client.delete(f"/api/v1/items/{item_id}", headers=auth("admin-1")).status_code == 409
    assert client.get("/api/v1/items/tidak-ada", headers=auth("siswa-1")).status_code == 404


def test_image_upload_without_storage_configured(client):
    response = client.post(
        "/api/v1/items/alat-1/image",
        files={"file": ("kunci.png", b"\x89PNG data", "image/png")},
        headers=auth("admin-1"),
    )
    assert response.status_code == 400
