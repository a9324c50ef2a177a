"""
User enrollment, account state and credential management tests.
"""

from datetime import datetime, timezone

from httpx import AsyncClient

from doorlock.services.users import generate_user_id

USERS = "/api/v1/users"
VERIFY_RFID = "/api/v1/access/verify-rfid"
VERIFY_CODE = "/api/v1/access/verify-temporary-code"
LOGS = "/api/v1/access/logs"


def _enrollment(email, role="employee", methods=("rfid", "keypad")):
    return {
        "email": email,
        "firstName": "Ada",
        "lastName": "Lovelace",
        "role": role,
        "department": "Engineering",
        "accessLevel": 3,
        "allowedAccessMethods": list(methods),
    }


async def _enroll(client, headers, email, **kwargs):
    resp = await client.post(USERS, json=_enrollment(email, **kwargs), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def test_enroll_generates_monthly_serial(async_client: AsyncClient, admin_headers):
    now = datetime.now(timezone.utc)
    prefix = f"BTL-{now:%y}-{now:%m}-"

    first = await _enroll(async_client, admin_headers, "ada@example.com")
    second = await _enroll(async_client, admin_headers, "grace@example.com")
    visitor = await _enroll(async_client, admin_headers, "guest@example.com", role="visitor")

    assert first["userId"] == f"{prefix}01"
    assert second["userId"] == f"{prefix}02"
    # First visitor of the month: role count is 0, but -01 and -02 are taken
    assert visitor["userId"] == f"{prefix}03"
    assert first["status"] == "active"
    assert first["allowedAccessMethods"] == ["rfid", "keypad"]
    assert first["rfidTags"] == []


async def test_user_id_serial_counts_per_role(db_session, user_factory):
    await user_factory("BTL-25-01-01", role="employee")
    await user_factory("BTL-25-01-02", role="employee")
    january = datetime(2025, 1, 20, tzinfo=timezone.utc)
    february = datetime(2025, 2, 3, tzinfo=timezone.utc)

    # Two employees this month: serial 03
    assert await generate_user_id(db_session, "employee", january) == "BTL-25-01-03"
    # No managers yet and -01 is free in a fresh month
    assert await generate_user_id(db_session, "manager", february) == "BTL-25-02-01"
    # No managers yet but -01 is taken: skip forward past the employees
    assert await generate_user_id(db_session, "manager", january) == "BTL-25-01-03"


async def test_enroll_duplicate_email(async_client: AsyncClient, admin_headers):
    await _enroll(async_client, admin_headers, "dup@example.com")
    resp = await async_client.post(
        USERS, json=_enrollment("DUP@example.com"), headers=admin_headers
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "User with this email already exists"


async def test_enroll_requires_admin(async_client: AsyncClient, employee_headers):
    resp = await async_client.post(
        USERS, json=_enrollment("nope@example.com"), headers=employee_headers
    )
    assert resp.status_code == 403


async def test_enroll_validation(async_client: AsyncClient, admin_headers):
    bad_method = _enrollment("x@example.com", methods=("retina",))
    assert (await async_client.post(USERS, json=bad_method, headers=admin_headers)).status_code == 422

    bad_level = _enrollment("y@example.com")
    bad_level["accessLevel"] = 0
    assert (await async_client.post(USERS, json=bad_level, headers=admin_headers)).status_code == 422


async def test_list_and_get(async_client: AsyncClient, admin_headers, user_factory):
    await user_factory("BTL-25-03-50", role="manager")
    await user_factory("BTL-25-03-51", status="suspended")

    resp = await async_client.get(USERS, params={"role": "manager"}, headers=admin_headers)
    assert [u["userId"] for u in resp.json()["data"]] == ["BTL-25-03-50"]

    resp = await async_client.get(USERS, params={"status": "suspended"}, headers=admin_headers)
    assert resp.json()["pagination"]["total"] == 1

    resp = await async_client.get(f"{USERS}/BTL-25-03-50", headers=admin_headers)
    assert resp.json()["data"]["role"] == "manager"

    resp = await async_client.get(f"{USERS}/BTL-00-00-00", headers=admin_headers)
    assert resp.status_code == 404


async def test_suspension_blocks_door_access(
    async_client: AsyncClient, admin_headers, user_factory
):
    await user_factory("BTL-25-03-52")
    resp = await async_client.post(
        f"{USERS}/BTL-25-03-52/rfid-tags", json={"tag": "0xBEEF01"}, headers=admin_headers
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["rfidTags"] == ["0xBEEF01"]

    verified = await async_client.post(VERIFY_RFID, json={"rfidTag": "beef01"})
    assert verified.json()["data"]["authorized"] is True

    resp = await async_client.patch(
        f"{USERS}/BTL-25-03-52/status", json={"status": "suspended"}, headers=admin_headers
    )
    assert resp.json()["data"]["status"] == "suspended"

    denied = await async_client.post(VERIFY_RFID, json={"rfidTag": "BEEF01"})
    assert denied.json()["data"]["reason"] == "User account is suspended"


async def test_role_update(async_client: AsyncClient, admin_headers, user_factory):
    await user_factory("BTL-25-03-53")
    resp = await async_client.patch(
        f"{USERS}/BTL-25-03-53/role", json={"role": "manager"}, headers=admin_headers
    )
    assert resp.json()["data"]["role"] == "manager"

    resp = await async_client.patch(
        f"{USERS}/BTL-25-03-53/role", json={"role": "overlord"}, headers=admin_headers
    )
    assert resp.status_code == 422


async def test_duplicate_credentials_rejected(
    async_client: AsyncClient, admin_headers, user_factory
):
    await user_factory("BTL-25-03-54")
    await user_factory("BTL-25-03-55")

    await async_client.post(
        f"{USERS}/BTL-25-03-54/rfid-tags", json={"tag": "abcd12"}, headers=admin_headers
    )
    resp = await async_client.post(
        f"{USERS}/BTL-25-03-55/rfid-tags", json={"tag": "0xABCD12"}, headers=admin_headers
    )
    assert resp.status_code == 400

    resp = await async_client.post(
        f"{USERS}/BTL-25-03-54/fingerprints", json={"fingerprintId": 4}, headers=admin_headers
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["fingerprintIds"] == [4]

    resp = await async_client.post(
        f"{USERS}/BTL-25-03-55/fingerprints", json={"fingerprintId": 4}, headers=admin_headers
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Fingerprint ID 4 already registered"


async def test_new_temporary_code_replaces_unused_one(
    async_client: AsyncClient, admin_headers, user_factory
):
    await user_factory("BTL-25-03-56")
    url = f"{USERS}/BTL-25-03-56/temporary-code"

    first = (await async_client.post(url, json={"expiresInMinutes": 5}, headers=admin_headers)).json()
    code = first["data"]["code"]
    assert len(code) == 6 and code.isdigit()

    second = (await async_client.post(url, headers=admin_headers)).json()["data"]["code"]

    if second != code:
        stale = await async_client.post(VERIFY_CODE, json={"code": code})
        assert stale.json()["data"]["reason"] == "Invalid access code"

    fresh = await async_client.post(VERIFY_CODE, json={"code": second})
    assert fresh.json()["data"]["authorized"] is True


async def test_temporary_code_expiry_bounds(async_client: AsyncClient, admin_headers, user_factory):
    await user_factory("BTL-25-03-57")
    resp = await async_client.post(
        f"{USERS}/BTL-25-03-57/temporary-code",
        json={"expiresInMinutes": 0},
        headers=admin_headers,
    )
    assert resp.status_code == 422


async def test_access_history(async_client: AsyncClient, admin_headers, user_factory):
    await user_factory("BTL-25-03-58")
    for ts, status in [
        ("2025-03-03T08:00:00Z", "success"),
        ("2025-03-03T12:00:00Z", "failed"),
        ("2025-03-04T08:00:00Z", "success"),
    ]:
        await async_client.post(
            LOGS,
            json={
                "deviceId": "DOOR-7",
                "userId": "BTL-25-03-58",
                "method": "fingerprint",
                "fingerprintId": 2,
                "status": status,
                "timestamp": ts,
            },
        )

    url = f"{USERS}/BTL-25-03-58/access-history"
    items = (await async_client.get(url, headers=admin_headers)).json()["data"]
    assert len(items) == 3
    assert items[0]["accessType"] == "fingerprint"
    assert items[0]["deviceId"] == "DOOR-7"

    failed = (await async_client.get(url, params={"type": "failed"}, headers=admin_headers)).json()
    assert [i["message"] for i in failed["data"]] == ["Unauthorized"]

    ranged = await async_client.get(
        url, params={"from": "2025-03-04", "to": "2025-03-04"}, headers=admin_headers
    )
    assert [i["result"] for i in ranged.json()["data"]] == ["success"]


async def test_update_user_profile_and_level(
    async_client: AsyncClient, admin_headers, user_factory
):
    await user_factory("BTL-25-03-60")
    resp = await async_client.patch(
        f"{USERS}/BTL-25-03-60",
        json={"firstName": " Grace ", "department": "Research", "accessLevel": 7},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["firstName"] == "Grace"
    assert data["department"] == "Research"
    assert data["accessLevel"] == 7
    # Omitted fields are untouched
    assert data["lastName"] == "BTL-25-03-60"
    assert data["allowedAccessMethods"] == ["rfid", "fingerprint", "keypad"]


async def test_disabling_rfid_blocks_the_tag(
    async_client: AsyncClient, admin_headers, user_factory
):
    await user_factory("BTL-25-03-61")
    await async_client.post(
        f"{USERS}/BTL-25-03-61/rfid-tags", json={"tag": "F00D01"}, headers=admin_headers
    )
    assert (
        await async_client.post(VERIFY_RFID, json={"rfidTag": "f00d01"})
    ).json()["data"]["authorized"] is True

    resp = await async_client.patch(
        f"{USERS}/BTL-25-03-61",
        json={"allowedAccessMethods": ["fingerprint"]},
        headers=admin_headers,
    )
    assert resp.json()["data"]["allowedAccessMethods"] == ["fingerprint"]

    denied = (await async_client.post(VERIFY_RFID, json={"rfidTag": "F00D01"})).json()
    assert denied["data"]["authorized"] is False
    assert denied["data"]["reason"] == "RFID access method not enabled for this user"


async def test_update_user_email_conflict(
    async_client: AsyncClient, admin_headers, user_factory
):
    await user_factory("BTL-25-03-62", email="first@example.com")
    await user_factory("BTL-25-03-63", email="second@example.com")

    resp = await async_client.patch(
        f"{USERS}/BTL-25-03-63", json={"email": "FIRST@example.com"}, headers=admin_headers
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "User with this email already exists"

    # Re-submitting its own address is not a conflict
    resp = await async_client.patch(
        f"{USERS}/BTL-25-03-63", json={"email": "second@example.com"}, headers=admin_headers
    )
    assert resp.status_code == 200


async def test_update_user_validation_and_access(
    async_client: AsyncClient, admin_headers, employee_headers, user_factory
):
    await user_factory("BTL-25-03-64")
    url = f"{USERS}/BTL-25-03-64"

    assert (await async_client.patch(url, json={"firstName": None}, headers=admin_headers)).status_code == 422
    assert (await async_client.patch(url, json={"accessLevel": 11}, headers=admin_headers)).status_code == 422
    assert (
        await async_client.patch(url, json={"allowedAccessMethods": ["iris"]}, headers=admin_headers)
    ).status_code == 422
    assert (await async_client.patch(url, json={"department": "Ops"}, headers=employee_headers)).status_code == 403
    assert (
        await async_client.patch(f"{USERS}/BTL-00-00-00", json={}, headers=admin_headers)
    ).status_code == 404
