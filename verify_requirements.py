"""
Verification script for the transfer ledger API
Runs against a live server and checks:
1. Create / Get: server assigns id, created and version
2. Bulk create: a batch with one invalid item persists nothing
3. Listing: search, numeric amount sort, pagination and the 204 empty signal
4. State changes: version counting, no-op transitions and If-Match conflicts
"""
import os
import time
import uuid
import requests

BASE_URL = os.getenv("LEDGER_BASE_URL", "http://localhost:8000")
API_URL = f"{BASE_URL}/api/transactions"


def print_section(title):
    print("\n" + "="*70)
    print(f"  {title}")
    print("="*70)


def verify_health_check():
    print_section("Health Check")

    response = requests.get(f"{BASE_URL}/hc")
    data = response.json()
    print(f"   Status: {data['status']}")
    print(f"   Current Time: {data['current_time']}")
    assert response.status_code == 200, "Health check should return 200"
    assert data['status'] == 'HEALTHY', "Should return HEALTHY status"
    print("   ✅ Health check working")


def verify_create_and_get(tag):
    print_section("Test 1: Create and Get")

    payload = {
        "fromAccount": f"{tag}-ACME Corp",
        "toAccount": f"{tag}-Globex",
        "amount": -12.5,
        "id": str(uuid.uuid4()),
        "version": 99,
    }
    response = requests.post(API_URL, json=payload)
    print(f"   Status: {response.status_code}")
    assert response.status_code == 201, "Should return 201 Created"

    created = response.json()
    print(f"   Id: {created['id']}  Created: {created['created']}")
    assert created['id'] != payload['id'], "Client id must be ignored"
    assert created['version'] == 0, "Version starts at 0"
    assert created['state'] == 'Send', "State defaults to Send"
    assert uuid.UUID(created['id']).version == 7, "Id should be time-ordered (v7)"

    response = requests.get(f"{API_URL}/{created['id']}")
    assert response.status_code == 200
    assert response.json() == created, "Stored record should match the create response"

    response = requests.get(f"{API_URL}/{uuid.uuid4()}")
    assert response.status_code == 404, "Unknown id should return 404"
    print("   ✅ Create and get working")
    return created


def verify_bulk_create(tag):
    print_section("Test 2: Bulk Create (all or nothing)")

    batch = [
        {"fromAccount": f"{tag}-bulk-a", "toAccount": "Dest", "amount": 1},
        {"fromAccount": "", "toAccount": "Dest", "amount": 2},
        {"fromAccount": f"{tag}-bulk-c", "toAccount": "Dest", "amount": 3},
    ]
    response = requests.post(f"{API_URL}/bulk", json=batch)
    print(f"   Invalid batch status: {response.status_code}")
    assert response.status_code == 400, "Invalid batch should return 400"
    errors = response.json()
    assert any(e.get('index') == 1 for e in errors), "Errors should point at candidate #2"

    response = requests.get(f"{API_URL}/1/10", params={"q": f"{tag}-bulk"})
    assert response.status_code == 204, "Nothing from the rejected batch may be stored"

    batch[1]["fromAccount"] = f"{tag}-bulk-b"
    response = requests.post(f"{API_URL}/bulk", json=batch)
    print(f"   Valid batch status: {response.status_code}")
    assert response.status_code == 201
    assert len(response.json()) == 3
    print("   ✅ Bulk create is all or nothing")


def verify_listing(tag):
    print_section("Test 3: Search, Sort and Pagination")

    amounts = [-5.0, 0.0, 3.25, -100.0]
    requests.post(f"{API_URL}/bulk", json=[
        {"fromAccount": f"{tag}-sort", "toAccount": "Dest", "amount": amount} for amount in amounts
    ]).raise_for_status()

    response = requests.get(f"{API_URL}/1/10", params={
        "q": f"{tag}-sort", "sortBy": "amount", "sortDirection": "asc",
    })
    body = response.json()
    sorted_amounts = [t['amount'] for t in body['data']]
    print(f"   Amount ascending: {sorted_amounts}")
    assert sorted_amounts == [-100.0, -5.0, 0.0, 3.25], "Amounts should sort numerically"

    seen = []
    for page in (1, 2):
        response = requests.get(f"{API_URL}/{page}/2", params={
            "q": f"{tag}-sort", "sortBy": "amount", "sortDirection": "asc",
        })
        assert response.status_code == 200
        assert response.json()['totalPages'] == 2
        seen.extend(t['id'] for t in response.json()['data'])
    assert seen == [t['id'] for t in body['data']], "Pages should partition the sorted set"

    response = requests.get(f"{API_URL}/1/10", params={"q": f"{tag}-no-such-account"})
    assert response.status_code == 204, "No matches should return 204"

    response = requests.get(f"{API_URL}/1/10", params={"sortBy": "balance"})
    assert response.status_code == 400, "Unknown sort field should return 400"
    print("   ✅ Listing working")


def verify_state_changes(created):
    print_section("Test 4: State Changes")

    url = f"{API_URL}/{created['id']}/state"
    assert requests.put(f"{url}/Paid").status_code == 204
    assert requests.put(f"{url}/Paid").status_code == 204
    data = requests.get(f"{API_URL}/{created['id']}").json()
    print(f"   State: {data['state']}  Version: {data['version']}")
    assert data['state'] == 'Paid'
    assert data['version'] == 2, "No-op transitions still count"
    assert data['lastStateUpdate'] is not None

    response = requests.put(f"{url}/Send", headers={"If-Match": "1"})
    print(f"   Stale If-Match status: {response.status_code}")
    assert response.status_code == 409, "Stale version should conflict"

    response = requests.put(f"{url}/Send", headers={"If-Match": "2"})
    assert response.status_code == 204

    assert requests.put(f"{API_URL}/{uuid.uuid4()}/state/Paid").status_code == 404
    print("   ✅ State changes working")


def main():
    print("\n" + "="*70)
    print("  Transfer Ledger Verification")
    print("="*70)
    print(f"\n   Target: {BASE_URL}")
    print("   Prerequisite: python manage.py runserver (tables are created on startup)")

    tag = f"verify{int(time.time())}"
    try:
        verify_health_check()
        created = verify_create_and_get(tag)
        verify_bulk_create(tag)
        verify_listing(tag)
        verify_state_changes(created)

        print_section("All Checks Completed Successfully")
    except requests.exceptions.ConnectionError:
        print("\n❌ Error: Could not connect to server")
        print(f"   Make sure the server is running on {BASE_URL}")
    except AssertionError as e:
        print(f"\n❌ Check Failed: {e}")
        raise


if __name__ == "__main__":
    main()
