#!/usr/bin/env python3
import argparse
import dataclasses
import sys
import time

import httpx

from payu_bridge.services.signature import CallbackVerifier, GatewayCredentials


@dataclasses.dataclass
class CheckResult:
    name: str
    passed: bool
    detail: str
    extra: str | None = None


def make_application(course: str = "course1") -> dict:
    return {
        "personalInfo": {
            "fullName": "Flow Check",
            "email": "flow-check@example.com",
            "phone": "9999999999",
            "city": "Pune",
            "dob": "2000-01-01",
        },
        "course": course,
    }


def signed_callback(verifier: CallbackVerifier, payu_params: dict, status: str = "success") -> dict:
    callback = {
        "txnid": payu_params["txnid"],
        "status": status,
        "amount": payu_params["amount"],
        "firstname": payu_params["firstname"],
        "email": payu_params["email"],
        "productinfo": payu_params["productinfo"],
        "mihpayid": f"check{int(time.time())}",
        "key": verifier.credentials.key,
    }
    callback["hash"] = verifier.expected_hash(callback)
    return callback


def run_health_check(client: httpx.Client, base_url: str) -> CheckResult:
    try:
        resp = client.get(f"{base_url}/")
        if resp.status_code != 200:
            return CheckResult("Health Check", False, f"Expected 200, got {resp.status_code}")
        if resp.json().get("status") != "HEALTHY":
            return CheckResult("Health Check", False, f"Expected HEALTHY, got {resp.json().get('status')!r}")
        return CheckResult("Health Check", True, "Health check endpoint working correctly")
    except Exception as exc:  # noqa: BLE001
        return CheckResult("Health Check", False, f"Exception: {exc}")


def run_initiate(client: httpx.Client, base_url: str) -> tuple[CheckResult, dict | None]:
    try:
        resp = client.post(f"{base_url}/api/payu-initiate", json=make_application())
        if resp.status_code != 200:
            return CheckResult("Initiate", False, f"Expected 200, got {resp.status_code}"), None
        params = resp.json()["payuParams"]
        details = client.get(f"{base_url}/api/payment-details", params={"txnid": params["txnid"]})
        stored = details.json().get("status") if details.status_code == 200 else None
        if stored != "pending":
            return CheckResult("Initiate", False, f"Expected pending record, got {stored!r}"), params
        return CheckResult("Initiate", True, f"Pending application {params['txnid']} created"), params
    except Exception as exc:  # noqa: BLE001
        return CheckResult("Initiate", False, f"Exception: {exc}"), None


def run_forged_callback(client: httpx.Client, base_url: str, verifier: CallbackVerifier, params: dict) -> CheckResult:
    forged = signed_callback(verifier, params)
    forged["hash"] = "0" * 128
    try:
        resp = client.post(f"{base_url}/api/payu-callback", data=forged)
        if resp.status_code != 400:
            return CheckResult("Forged Callback", False, f"Expected 400, got {resp.status_code}")
        return CheckResult("Forged Callback", True, "Callback with a bad hash was rejected")
    except Exception as exc:  # noqa: BLE001
        return CheckResult("Forged Callback", False, f"Exception: {exc}")


def run_signed_callback(client: httpx.Client, base_url: str, verifier: CallbackVerifier, params: dict) -> CheckResult:
    callback = signed_callback(verifier, params)
    try:
        locations = []
        for _ in range(2):
            resp = client.post(f"{base_url}/api/payu-callback", data=callback)
            if resp.status_code not in (302, 303):
                return CheckResult("Signed Callback", False, f"Expected redirect, got {resp.status_code}")
            locations.append(resp.headers.get("location", ""))
        details = client.get(f"{base_url}/api/payment-details", params={"txnid": params["txnid"]}).json()
        if details.get("status") != "success":
            return CheckResult("Signed Callback", False, f"Expected success, got {details.get('status')!r}")
        return CheckResult(
            "Signed Callback",
            True,
            "Callback applied once and replay accepted",
            extra=f"redirect={locations[-1]} callbackCount={details.get('callbackCount')}",
        )
    except Exception as exc:  # noqa: BLE001
        return CheckResult("Signed Callback", False, f"Exception: {exc}")


def print_report(results: list[CheckResult], total_seconds: float) -> int:
    passed = sum(1 for r in results if r.passed)
    total = len(results)
    verdict = "PASS" if passed == total else "FAIL"
    print(f"RESULT: {verdict} ({passed} / {total} checks passed)\n")
    print("Check results:")
    for res in results:
        state = "PASS" if res.passed else "FAIL"
        print(f"- {state} | {res.name}")
        print(f"  - {res.detail}")
        if res.extra:
            print(f"  - {res.extra}")
    print(f"\nTotal time: {total_seconds:.1f}s")
    return 0 if passed == total else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="PayU integration flow check")
    parser.add_argument("--base-url", default="http://localhost:8000", help="Base URL of API")
    parser.add_argument("--payu-key", required=True, help="Merchant key the deployment is configured with")
    parser.add_argument("--payu-salt", required=True, help="Merchant salt the deployment is configured with")
    parser.add_argument("--request-timeout-seconds", type=float, default=10.0, help="HTTP request timeout")
    args = parser.parse_args()

    verifier = CallbackVerifier(GatewayCredentials(key=args.payu_key, salt=args.payu_salt, payment_url=""))
    started = time.perf_counter()
    with httpx.Client(timeout=args.request_timeout_seconds, follow_redirects=False) as client:
        results = [run_health_check(client, args.base_url)]
        initiate_result, params = run_initiate(client, args.base_url)
        results.append(initiate_result)
        if params is not None:
            results.append(run_forged_callback(client, args.base_url, verifier, params))
            results.append(run_signed_callback(client, args.base_url, verifier, params))
    total = time.perf_counter() - started
    return print_report(results, total)


if __name__ == "__main__":
    sys.exit(main())
