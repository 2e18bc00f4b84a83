"""
BranchBooks - API Tests

End-to-end checks of the HTTP surface: identity headers, status codes and
the error envelope.
"""

import pytest
from httpx import AsyncClient


class TestHealth:
    
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestIdentity:
    
    @pytest.mark.asyncio
    async def test_missing_headers_rejected(self, client: AsyncClient, test_payable):
        response = await client.get(f"/api/v1/payables/{test_payable.id}")
        
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHORIZED"
    
    @pytest.mark.asyncio
    async def test_unknown_role_rejected(self, client: AsyncClient, auth_headers, admin_context):
        headers = auth_headers(admin_context)
        headers["X-User-Role"] = "OWNER"
        
        response = await client.get("/api/v1/payables", headers=headers)
        
        assert response.status_code == 401
    
    @pytest.mark.asyncio
    async def test_other_branch_forbidden(
        self, client: AsyncClient, auth_headers, other_accountant_context, test_payable,
    ):
        response = await client.get(
            f"/api/v1/payables/{test_payable.id}",
            headers=auth_headers(other_accountant_context),
        )
        
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "BRANCH_ACCESS_DENIED"


class TestPayrollEndpoints:
    
    @pytest.mark.asyncio
    async def test_advance_then_salary(self, client: AsyncClient, auth_headers, accountant_context, test_employee):
        headers = auth_headers(accountant_context)
        
        response = await client.post(
            f"/api/v1/employees/{test_employee.id}/advances",
            json={
                "amount": "100.00",
                "monthly_deduction": "50.00",
                "advance_date": "2025-01-05",
                "reason": "Medical bill",
            },
            headers=headers,
        )
        assert response.status_code == 201
        advance_id = response.json()["advance"]["id"]
        
        response = await client.post(
            "/api/v1/payroll/pay-salary",
            json={
                "employee_id": str(test_employee.id),
                "amount": "1000.00",
                "payment_date": "2025-01-31",
            },
            headers=headers,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["payment"]["total_deduction"] == "50.00"
        assert body["payment"]["net_amount"] == "950.00"
        assert body["policy"] == "fixed_monthly"
        assert body["deductions"][0]["advance_id"] == advance_id
        assert body["deductions"][0]["new_remaining"] == "50.00"
        
        response = await client.get(f"/api/v1/employees/{test_employee.id}/advances", headers=headers)
        assert response.status_code == 200
        advances = response.json()["advances"]
        assert advances[0]["remaining_amount"] == "50.00"
        assert len(advances[0]["deductions"]) == 1
    
    @pytest.mark.asyncio
    async def test_invalid_amount_is_validation_error(self, client: AsyncClient, auth_headers, admin_context, test_employee):
        response = await client.post(
            "/api/v1/payroll/pay-salary",
            json={
                "employee_id": str(test_employee.id),
                "amount": "-5",
                "payment_date": "2025-01-31",
            },
            headers=auth_headers(admin_context),
        )
        
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


class TestPayableEndpoints:
    
    @pytest.mark.asyncio
    async def test_payable_lifecycle(self, client: AsyncClient, auth_headers, accountant_context, test_vendor):
        headers = auth_headers(accountant_context)
        
        response = await client.post(
            "/api/v1/payables",
            json={
                "contact_id": str(test_vendor.id),
                "amount": "500.00",
                "debt_date": "2025-03-01",
                "due_date": "2025-03-31",
                "invoice_number": "INV-7",
            },
            headers=headers,
        )
        assert response.status_code == 201
        payable = response.json()
        assert payable["status"] == "ACTIVE"
        payable_id = payable["id"]
        
        response = await client.post(
            f"/api/v1/payables/{payable_id}/pay",
            json={"amount_paid": "600.00", "payment_date": "2025-03-10"},
            headers=headers,
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "PAYMENT_EXCEEDS_REMAINING"
        
        response = await client.post(
            f"/api/v1/payables/{payable_id}/pay",
            json={"amount_paid": "200.00", "payment_date": "2025-03-10", "payment_method": "BANK_TRANSFER"},
            headers=headers,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["debt"]["remaining_amount"] == "300.00"
        assert body["debt"]["status"] == "PARTIAL"
        assert body["transaction"]["transaction_type"] == "EXPENSE"
        
        response = await client.delete(f"/api/v1/payables/{payable_id}", headers=headers)
        assert response.status_code == 409
        
        response = await client.get("/api/v1/payables", params={"status": "PARTIAL"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 1
    
    @pytest.mark.asyncio
    async def test_receivable_collect(self, client: AsyncClient, auth_headers, admin_context, test_receivable):
        response = await client.post(
            f"/api/v1/receivables/{test_receivable.id}/collect",
            json={"amount_paid": "500.00", "payment_date": "2025-03-15"},
            headers=auth_headers(admin_context),
        )
        
        assert response.status_code == 201
        body = response.json()
        assert body["debt"]["status"] == "PAID"
        assert body["transaction"]["transaction_type"] == "INCOME"
    
    @pytest.mark.asyncio
    async def test_due_date_before_debt_date(self, client: AsyncClient, auth_headers, admin_context, test_vendor):
        response = await client.post(
            "/api/v1/payables",
            json={
                "contact_id": str(test_vendor.id),
                "amount": "10",
                "debt_date": "2025-03-10",
                "due_date": "2025-03-01",
            },
            headers=auth_headers(admin_context),
        )
        
        assert response.status_code == 422


class TestSubUnitEndpoints:
    
    @pytest.mark.asyncio
    async def test_duplicate_sub_unit_conflict(
        self, client: AsyncClient, auth_headers, admin_context, test_inventory_item,
    ):
        headers = auth_headers(admin_context)
        payload = {
            "inventory_item_id": str(test_inventory_item.id),
            "unit_name": "bottle",
            "ratio": "24",
            "selling_price": "1.50",
        }
        
        first = await client.post("/api/v1/inventory-sub-units", json=payload, headers=headers)
        second = await client.post("/api/v1/inventory-sub-units", json=payload, headers=headers)
        
        assert first.status_code == 201
        assert first.json()["inventory_item"]["name"] == "Bottled Water"
        assert second.status_code == 409
        assert second.json()["detail"]["code"] == "DUPLICATE_ENTRY"


class TestCompensationEndpoints:
    
    @pytest.mark.asyncio
    async def test_bonus_lifecycle(
        self, client: AsyncClient, auth_headers, accountant_context, test_employee, test_branch,
    ):
        headers = auth_headers(accountant_context)
        
        response = await client.post(
            f"/api/v1/employees/{test_employee.id}/bonuses",
            json={"amount": "120.00", "bonus_date": "2025-03-20", "reason": "Eid"},
            headers=headers,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["transaction"]["transaction_type"] == "EXPENSE"
        assert body["transaction"]["category"] == "bonuses"
        bonus_id = body["bonus"]["id"]
        
        response = await client.get(f"/api/v1/employees/branches/{test_branch.id}/bonuses-summary", headers=headers)
        assert response.status_code == 200
        assert response.json()["total_bonuses"] == "120.00"
        assert response.json()["count"] == 1
        
        response = await client.delete(f"/api/v1/employees/bonuses/{bonus_id}", headers=headers)
        assert response.status_code == 200
        
        response = await client.get(f"/api/v1/employees/{test_employee.id}/bonuses", headers=headers)
        assert response.json()["total"] == 0
    
    @pytest.mark.asyncio
    async def test_salary_increase(self, client: AsyncClient, auth_headers, admin_context, test_employee):
        headers = auth_headers(admin_context)
        employee_id = test_employee.id
        
        response = await client.post(
            f"/api/v1/employees/{employee_id}/salary-increases",
            json={"new_salary": "800.00", "effective_date": "2025-04-01"},
            headers=headers,
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "BUSINESS_RULE_VIOLATION"
        
        response = await client.post(
            f"/api/v1/employees/{employee_id}/salary-increases",
            json={"new_salary": "1000.00", "effective_date": "2025-04-01"},
            headers=headers,
        )
        assert response.status_code == 201
        assert response.json()["increase_amount"] == "100.00"
