API = "/api/v1"


def test_health(client):
    response = client.get(f"{API}/health")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["database"] == "connected"
    assert "X-Request-ID" in response.headers


class TestEnvelope:
    def test_list_carries_page_meta(self, client, headers, add_student):
        add_student()

        response = client.get(f"{API}/students", headers=headers, params={"limit": 1})

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert len(body["data"]) == 1
        assert body["meta"] == {"total": 2, "page": 1, "limit": 1, "total_pages": 2}

    def test_school_id_is_required(self, client, school_data):
        response = client.get(f"{API}/students")

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_REQUEST"

    def test_school_id_from_query(self, client, school_data):
        response = client.get(f"{API}/students", params={"school_id": school_data.school_id})
        assert response.json()["data"][0]["student_code"] == "GVS-001"

    def test_other_school_sees_nothing(self, client, school_data):
        other = client.post(f"{API}/schools", json={"name": "Hill School", "code": "HS"}).json()["data"]

        response = client.get(
            f"{API}/students/{school_data.student_id}", headers={"X-School-ID": str(other["id"])}
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "RESOURCE_NOT_FOUND"

    def test_request_id_is_echoed_on_errors(self, client, headers):
        response = client.get(f"{API}/students/9999", headers={**headers, "X-Request-ID": "req-42"})

        body = response.json()
        assert body["success"] is False
        assert body["request_id"] == "req-42"
        assert body["path"] == f"{API}/students/9999"
        assert response.headers["X-Request-ID"] == "req-42"


class TestStudents:
    def test_register_and_enrol_together(self, client, headers, school_data):
        response = client.post(
            f"{API}/students",
            headers=headers,
            json={
                "student_code": "GVS-100",
                "first_name": "Ravi",
                "last_name": "Kumar",
                "category_head_id": school_data.general_id,
                "academic_year_id": school_data.year_id,
                "class_id": school_data.class_two_id,
            },
        )

        assert response.status_code == 201
        student = response.json()["data"]
        assert student["full_name"] == "Ravi Kumar"
        assert student["email"] is None
        assert student["opening_balance"] == "0.00"

        listed = client.get(
            f"{API}/students", headers=headers, params={"class_id": school_data.class_two_id}
        ).json()["data"]
        assert [s["id"] for s in listed] == [student["id"]]

    def test_duplicate_student_code(self, client, headers):
        response = client.post(
            f"{API}/students",
            headers=headers,
            json={"student_code": "GVS-001", "first_name": "A", "last_name": "B"},
        )

        assert response.status_code == 409
        assert response.json()["message"] == "A student with this student ID already exists in this school"

    def test_invalid_body(self, client, headers):
        response = client.post(f"{API}/students", headers=headers, json={"first_name": "A"})

        body = response.json()
        assert response.status_code == 422
        assert body["error_code"] == "VALIDATION_ERROR"
        assert {error["field"] for error in body["errors"]} >= {"student_code", "last_name"}

    def test_update(self, client, headers, school_data):
        response = client.patch(
            f"{API}/students/{school_data.student_id}", headers=headers, json={"phone": "98450 00000"}
        )

        assert response.status_code == 200
        assert response.json()["data"]["phone"] == "98450 00000"

    def test_second_active_enrolment_conflicts(self, client, headers, school_data):
        response = client.post(
            f"{API}/students/{school_data.student_id}/academic-records",
            headers=headers,
            json={"academic_year_id": school_data.year_id, "class_id": school_data.class_two_id},
        )
        assert response.status_code == 409


class TestSetup:
    def test_create_and_list_classes(self, client, headers):
        created = client.post(f"{API}/setup/classes", headers=headers, json={"name": "Class 3", "ordinal": 3})
        assert created.status_code == 201

        names = [row["name"] for row in client.get(f"{API}/setup/classes", headers=headers).json()["data"]]
        assert names == ["Class 1", "Class 2", "Class 3"]

    def test_duplicate_class_name(self, client, headers):
        response = client.post(f"{API}/setup/classes", headers=headers, json={"name": "Class 1"})
        assert response.status_code == 409

    def test_unknown_kind(self, client, headers):
        assert client.get(f"{API}/setup/buses", headers=headers).status_code == 404

    def test_body_is_validated_per_kind(self, client, headers):
        response = client.post(f"{API}/setup/academic-years", headers=headers, json={"name": "2026-27"})
        assert response.status_code == 422

    def test_current_academic_year(self, client, headers):
        response = client.get(f"{API}/setup/academic-years/current", headers=headers)
        assert response.json()["data"]["name"] == "2025-26"


class TestFeeFlow:
    def test_breakdown(self, client, headers, school_data):
        response = client.get(
            f"{API}/fee-generation/breakdown",
            headers=headers,
            params={"student_id": school_data.student_id, "academic_year_id": school_data.year_id},
        )

        data = response.json()["data"]
        assert {fee["id"] for fee in data["school_fees"]} == {school_data.tuition_id, school_data.library_id}
        assert data["transport_fee"]["id"] == -1
        assert data["ledger_balance"] == {
            "id": 0,
            "name": "Previous balance",
            "amount": "200.00",
            "category": "Ledger",
        }
        assert data["grand_total"] == "2000.00"

    def test_breakdown_reports_missing_route_price(self, client, headers, school_data, add_student):
        student_id = add_student(class_id=school_data.class_two_id, route_id=school_data.route_id)

        response = client.get(
            f"{API}/fee-generation/breakdown",
            headers=headers,
            params={"student_id": student_id, "academic_year_id": school_data.year_id},
        )

        assert response.status_code == 400
        (missing,) = response.json()["details"]["missing_pricing"]
        assert missing["type"] == "transport"

    def test_generate_then_allocate_then_forecast(self, client, headers, school_data):
        generated = client.post(
            f"{API}/fee-generation/generate",
            headers=headers,
            params={"generated_by": "accounts"},
            json={
                "student_ids": [school_data.student_id],
                "academic_year_id": school_data.year_id,
                "fee_structure_ids": [school_data.tuition_id],
                "due_date": "2025-04-30",
            },
        )
        assert generated.status_code == 201
        history_id = generated.json()["data"]["history_id"]

        history = client.get(f"{API}/fee-generation/history/{history_id}", headers=headers).json()["data"]
        assert history["generated_by"] == "accounts"
        assert history["status"] == "completed"

        allocated = client.post(
            f"{API}/payments/allocate",
            headers=headers,
            json={
                "student_id": school_data.student_id,
                "academic_year_id": school_data.year_id,
                "amount_received": "1500.00",
                "allocation": {str(school_data.tuition_id): "1000.00", "-1": "500.00"},
                "payment_date": "2025-05-01",
                "payment_method": "online",
                "transaction_id": "UTR123",
            },
        )
        assert allocated.status_code == 201
        outcome = allocated.json()["data"]
        assert outcome["payment"]["amount"] == "1500.00"
        assert outcome["invoice"]["status"] == "paid"
        assert outcome["unallocated_amount"] == "0.00"

        forecast = client.get(
            f"{API}/fee-generation/forecast",
            headers=headers,
            params={
                "student_id": school_data.student_id,
                "academic_year_id": school_data.year_id,
                "forecast_up_to": "2025-05-31",
                "as_of": "2025-05-15",
            },
        ).json()["data"]
        assert forecast["breakdown"]["class_fees"]["fees"][0]["status"] == "paid"
        assert [fee["status"] for fee in forecast["breakdown"]["bus_fees"]["fees"]] == ["paid", "overdue"]
        assert forecast["summary"]["total_paid"] == "1500.00"

        payments = client.get(
            f"{API}/payments", headers=headers, params={"student_id": school_data.student_id}
        ).json()
        assert payments["meta"]["total"] == 1
        assert payments["data"][0]["transaction_id"] == "UTR123"

    def test_allocation_validation_error(self, client, headers, school_data):
        response = client.post(
            f"{API}/payments/allocate",
            headers=headers,
            json={
                "student_id": school_data.student_id,
                "academic_year_id": school_data.year_id,
                "amount_received": "100.00",
                "allocation": {"0": "50.00"},
                "payment_date": "2025-05-01",
            },
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"
        assert response.json()["details"]["field"] == "allocation"

    def test_invoice_lifecycle(self, client, headers, school_data):
        created = client.post(
            f"{API}/invoices",
            headers=headers,
            json={
                "student_id": school_data.student_id,
                "academic_year_id": school_data.year_id,
                "issue_date": "2025-05-01",
                "due_date": "2099-05-31",
                "items": [{"source_type": "FEE", "source_id": school_data.tuition_id}],
            },
        )
        assert created.status_code == 201
        invoice_id = created.json()["data"]["id"]

        finalized = client.post(f"{API}/invoices/{invoice_id}/finalize", headers=headers)
        assert finalized.json()["data"]["status"] == "issued"

        overpaid = client.post(
            f"{API}/payments",
            headers=headers,
            json={
                "student_id": school_data.student_id,
                "invoice_id": invoice_id,
                "amount": "5000.00",
                "payment_date": "2025-05-02",
            },
        )
        assert overpaid.status_code == 400
        assert overpaid.json()["details"]["remaining_balance"] == "1000.00"

        again = client.post(f"{API}/invoices/{invoice_id}/finalize", headers=headers)
        assert again.status_code == 400
        assert again.json()["error_code"] == "BUSINESS_RULE_VIOLATION"

    def test_payment_receipt(self, client, headers, school_data):
        invoice_id = client.post(
            f"{API}/invoices",
            headers=headers,
            json={
                "student_id": school_data.student_id,
                "academic_year_id": school_data.year_id,
                "issue_date": "2025-05-01",
                "due_date": "2099-05-31",
                "items": [{"source_type": "FEE", "source_id": school_data.tuition_id}],
            },
        ).json()["data"]["id"]
        client.post(f"{API}/invoices/{invoice_id}/finalize", headers=headers)
        payment = client.post(
            f"{API}/payments",
            headers=headers,
            json={
                "student_id": school_data.student_id,
                "invoice_id": invoice_id,
                "amount": "400.00",
                "payment_date": "2025-05-02",
                "payment_method": "online",
                "transaction_id": "TXN-42",
            },
        ).json()["data"]

        response = client.get(f"{API}/payments/{payment['id']}/receipt", headers=headers)

        assert response.status_code == 200
        receipt = response.json()["data"]
        assert receipt["receipt_number"] == payment["receipt_number"]
        assert receipt["payment"]["transaction_id"] == "TXN-42"
        assert receipt["student"]["student_code"] == "GVS-001"
        assert receipt["fee"]["remaining_balance"] == "600.00"
        assert receipt["school"]["name"] == "Green Valley School"

        missing = client.get(f"{API}/payments/9999/receipt", headers=headers)
        assert missing.status_code == 404
