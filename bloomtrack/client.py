"""
Small HTTP client for scripting against the BloomTrack API.

    api = BloomTrackClient("http://localhost:3001/api")
    api.sign_in("owner@example.com", "secret")
    seller = api.create_seller({"name": "Ravi", "serial_number": "12"})
"""
import requests

DEFAULT_BASE_URL = "http://localhost:3001/api"


class ApiError(Exception):
    def __init__(self, status, message):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


class BloomTrackClient:
    def __init__(self, base_url=DEFAULT_BASE_URL, token=None, timeout=15, session=None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self):
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(self, method, path, json=None, params=None, raw=False):
        resp = self.session.request(method, f"{self.base_url}{path}", json=json, params=params,
                                    headers=self._headers(), timeout=self.timeout)
        if not resp.ok:
            try:
                message = resp.json().get("error") or "Request failed"
            except ValueError:
                message = "Request failed"
            raise ApiError(resp.status_code, message)
        return resp.text if raw else resp.json()

    # ---------------------------
    # Auth
    # ---------------------------
    def sign_up(self, email, password, owner_name=None, mobile=None, shop_name=None):
        result = self.request("POST", "/auth/signup", json={
            "email": email, "password": password,
            "owner_name": owner_name, "mobile": mobile, "shop_name": shop_name,
        })
        self.token = result.get("token") or self.token
        return result

    def sign_in(self, email, password):
        result = self.request("POST", "/auth/signin", json={"email": email, "password": password})
        self.token = result.get("token") or self.token
        return result

    def sign_out(self):
        result = self.request("POST", "/auth/signout")
        self.token = None
        return result

    def current_user(self):
        return self.request("GET", "/auth/user")

    # ---------------------------
    # Profiles
    # ---------------------------
    def get_profile(self):
        return self.request("GET", "/profiles")

    def update_profile(self, data):
        return self.request("PUT", "/profiles", json=data)

    # ---------------------------
    # Sellers
    # ---------------------------
    def list_sellers(self):
        return self.request("GET", "/sellers")

    def search_sellers(self, query):
        return self.request("GET", "/sellers/search", params={"query": query})

    def get_seller(self, seller_id):
        return self.request("GET", f"/sellers/{seller_id}")

    def create_seller(self, data):
        return self.request("POST", "/sellers", json=data)

    def update_seller(self, seller_id, data):
        return self.request("PUT", f"/sellers/{seller_id}", json=data)

    def delete_seller(self, seller_id):
        return self.request("DELETE", f"/sellers/{seller_id}")

    def list_transactions(self, seller_id):
        return self.request("GET", f"/sellers/{seller_id}/transactions")

    def add_transaction(self, seller_id, data):
        return self.request("POST", f"/sellers/{seller_id}/transactions", json=data)

    def update_transaction(self, seller_id, txn_id, data):
        return self.request("PUT", f"/sellers/{seller_id}/transactions/{txn_id}", json=data)

    def delete_transaction(self, seller_id, txn_id):
        return self.request("DELETE", f"/sellers/{seller_id}/transactions/{txn_id}")

    def assign_salesman(self, txn_id, data):
        return self.request("PUT", f"/sellers/transactions/{txn_id}/salesman", json=data)

    def list_sold_to(self, seller_id):
        return self.request("GET", f"/sellers/{seller_id}/sold-to")

    def add_sold_to(self, seller_id, data):
        return self.request("POST", f"/sellers/{seller_id}/sold-to", json=data)

    def update_sold_to(self, seller_id, sale_id, data):
        return self.request("PUT", f"/sellers/{seller_id}/sold-to/{sale_id}", json=data)

    def delete_sold_to(self, seller_id, sale_id):
        return self.request("DELETE", f"/sellers/{seller_id}/sold-to/{sale_id}")

    def list_sale_to(self, seller_id):
        return self.request("GET", f"/sellers/{seller_id}/sale-to")

    def add_sale_to(self, seller_id, data):
        return self.request("POST", f"/sellers/{seller_id}/sale-to", json=data)

    # ---------------------------
    # Payments
    # ---------------------------
    def list_payments(self, seller_id):
        return self.request("GET", f"/sellers/{seller_id}/payments")

    def add_payment(self, seller_id, data):
        return self.request("POST", f"/sellers/{seller_id}/payments", json=data)

    def reconciliation(self, seller_id, from_date=None, to_date=None):
        params = {k: v for k, v in (("from", from_date), ("to", to_date)) if v}
        return self.request("GET", f"/sellers/{seller_id}/reconciliation", params=params)

    def clear_payment(self, seller_id, data):
        return self.request("POST", f"/sellers/{seller_id}/payments/clear", json=data)

    def receipt_html(self, seller_id, payment_id, thermal=False):
        params = {"thermal": "1"} if thermal else None
        return self.request("GET", f"/sellers/{seller_id}/payments/{payment_id}/receipt",
                            params=params, raw=True)

    def ledger(self, seller_id):
        return self.request("GET", f"/sellers/{seller_id}/ledger")

    def rebuild_ledger(self, seller_id):
        return self.request("POST", f"/sellers/{seller_id}/ledger/rebuild")

    # ---------------------------
    # Reports
    # ---------------------------
    def eod_report(self, day=None):
        params = {"date": str(day)} if day else None
        return self.request("GET", "/reports/eod", params=params)

    def health(self):
        return self.request("GET", "/health")
