# Overview: HTTP-level tests for the ledger API blueprints and the ledger CLI group.

from conftest import SHOP_OWNER_USER_ID, WAREHOUSE_ACTOR_ID, actor_headers
from stockledger.models import StockAccount


WAREHOUSE = actor_headers(WAREHOUSE_ACTOR_ID, "warehouse_manager")


class TestActorHeaders:
    def test_missing_headers_rejected(self, client, db_session, stocked):
        response = client.get(f"/api/inventory/accounts/{stocked.id}")
        assert response.status_code == 401

    def test_unknown_role_rejected(self, client, db_session, stocked):
        response = client.get(
            f"/api/inventory/accounts/{stocked.id}",
            headers=actor_headers(1, "auditor"),
        )
        assert response.status_code == 401

    def test_role_not_allowed(self, client, db_session, stocked, salesman):
        response = client.post(
            "/api/distributions",
            json={"distribution_type": "retail", "items": [{"product_id": stocked.id, "quantity": 1}]},
            headers=actor_headers(salesman.id, "salesman"),
        )
        assert response.status_code == 403


class TestHealth:
    def test_health_reports_counts(self, client, db_session, stocked):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["stock_accounts"] == 1


class TestInventoryRoutes:
    def test_record_movement(self, client, db_session, product):
        response = client.post(
            "/api/inventory/movements",
            json={"transaction_type": "stock_in", "product_id": product.id, "quantity": 25, "notes": "Delivery"},
            headers=WAREHOUSE,
        )

        assert response.status_code == 201
        body = response.get_json()
        assert body["transaction"]["transaction_type"] == "stock_in"
        assert body["transaction"]["transaction_date"].endswith("Z")
        assert body["account"]["warehouse_stock"] == 25

    def test_stock_out_beyond_warehouse_is_409_with_available(self, client, db_session, stocked):
        response = client.post(
            "/api/inventory/movements",
            json={"transaction_type": "stock_out", "product_id": stocked.id, "quantity": 150},
            headers=WAREHOUSE,
        )

        assert response.status_code == 409
        body = response.get_json()
        assert body["error_type"] == "InsufficientStockError"
        assert body["available"] == 100
        assert body["requested"] == 150

    def test_invalid_quantity_is_400(self, client, db_session, stocked):
        response = client.post(
            "/api/inventory/movements",
            json={"transaction_type": "stock_in", "product_id": stocked.id, "quantity": 2.5},
            headers=WAREHOUSE,
        )
        assert response.status_code == 400

    def test_unknown_product_is_404(self, client, db_session):
        response = client.get("/api/inventory/accounts/999", headers=WAREHOUSE)
        assert response.status_code == 404

    def test_history_and_reconcile(self, client, db_session, stocked):
        history = client.get(f"/api/inventory/products/{stocked.id}/history", headers=WAREHOUSE)
        reconcile = client.get(f"/api/inventory/products/{stocked.id}/reconcile", headers=WAREHOUSE)

        assert history.get_json()["history"][0]["warehouse_balance"] == 100
        assert reconcile.get_json()["consistent"] is True

    def test_salesman_sees_only_own_accounts(self, client, db_session, salesman, make_salesman):
        other = make_salesman()
        response = client.get(
            f"/api/inventory/salesmen/{other.id}/accounts",
            headers=actor_headers(salesman.id, "salesman"),
        )
        assert response.status_code == 403

    def test_alert_flow(self, client, db_session, stocked):
        client.post(
            "/api/inventory/movements",
            json={"transaction_type": "adjustment", "product_id": stocked.id, "quantity": -95},
            headers=WAREHOUSE,
        )

        alerts = client.get("/api/inventory/alerts?status=OPEN", headers=WAREHOUSE).get_json()["alerts"]
        assert len(alerts) == 1

        ack = client.post(f"/api/inventory/alerts/{alerts[0]['id']}/acknowledge", headers=WAREHOUSE)
        assert ack.status_code == 200
        assert ack.get_json()["status"] == "ACKNOWLEDGED"

    def test_transaction_end_date_bare_vs_midnight(self, client, db_session, stocked):
        day = db_session.query(StockAccount).filter_by(product_id=stocked.id).one().last_updated.date()
        url = f"/api/inventory/transactions?product_id={stocked.id}&end_date="

        whole_day = client.get(url + day.isoformat(), headers=WAREHOUSE).get_json()["transactions"]
        at_midnight = client.get(url + f"{day.isoformat()}T00:00:00", headers=WAREHOUSE).get_json()["transactions"]

        assert len(whole_day) == 1
        assert all(t["transaction_date"] == f"{day.isoformat()}T00:00:00Z" for t in at_midnight)


class TestWorkflowRoutes:
    def test_distribute_sell_and_return(self, client, db_session, stocked, salesman, shop):
        dist = client.post(
            "/api/distributions",
            json={
                "distribution_type": "salesman",
                "salesman_id": salesman.id,
                "items": [{"product_id": stocked.id, "quantity": 40}],
            },
            headers=WAREHOUSE,
        )
        assert dist.status_code == 201
        assert dist.get_json()["items"][0]["quantity"] == 40

        order = client.post(
            "/api/orders",
            json={"shop_id": shop.id, "items": [{"product_id": stocked.id, "quantity": 15}]},
            headers=actor_headers(salesman.id, "salesman"),
        )
        assert order.status_code == 201
        assert order.get_json()["status"] == "completed"

        shop_return = client.post(
            "/api/returns/shop",
            json={
                "shop_id": shop.id,
                "items": [{"product_id": stocked.id, "quantity": 2, "condition": "expired"}],
            },
            headers=actor_headers(salesman.id, "salesman"),
        )
        assert shop_return.status_code == 201

        eod = client.post(
            "/api/returns/salesman",
            json={"salesman_id": salesman.id, "items": [{"product_id": stocked.id, "quantity": 27}]},
            headers=WAREHOUSE,
        )
        assert eod.status_code == 201

        account = client.get(
            f"/api/inventory/salesmen/{salesman.id}/accounts/{stocked.id}",
            headers=actor_headers(salesman.id, "salesman"),
        ).get_json()
        assert account["remaining_quantity"] == 0
        assert account["sold_quantity"] == 15
        assert account["returned_quantity"] == 27

        warehouse = db_session.query(StockAccount).filter_by(product_id=stocked.id).one()
        assert (warehouse.warehouse_stock, warehouse.current_stock, warehouse.allocated_stock) == (87, 100, 13)

    def test_retail_with_customer_name(self, client, db_session, stocked):
        response = client.post(
            "/api/distributions",
            json={
                "distribution_type": "retail",
                "customer_name": "Nimal",
                "items": [{"product_id": stocked.id, "quantity": 2}],
            },
            headers=actor_headers(WAREHOUSE_ACTOR_ID, "owner"),
        )

        assert response.status_code == 201
        assert response.get_json()["recipient_name"] == "Nimal"

    def test_shop_order_and_completion(self, client, db_session, stocked, salesman, shop):
        client.post(
            "/api/distributions",
            json={
                "distribution_type": "salesman",
                "recipient": salesman.id,
                "items": [{"product_id": stocked.id, "quantity": 10}],
            },
            headers=WAREHOUSE,
        )
        created = client.post(
            "/api/orders",
            json={"shop_id": shop.id, "items": [{"product_id": stocked.id, "quantity": 4}]},
            headers=actor_headers(SHOP_OWNER_USER_ID, "shop"),
        )
        assert created.get_json()["status"] == "pending"

        order_id = created.get_json()["id"]
        completed = client.post(
            f"/api/orders/{order_id}/status",
            json={"status": "completed"},
            headers=actor_headers(salesman.id, "salesman"),
        )
        assert completed.status_code == 200

        cancel = client.post(
            f"/api/orders/{order_id}/status",
            json={"status": "cancelled"},
            headers=WAREHOUSE,
        )
        assert cancel.status_code == 409
        assert cancel.get_json()["error"] == "Cannot cancel a completed order"

    def test_foreign_shop_order_is_403(self, client, db_session, stocked, shop):
        response = client.post(
            "/api/orders",
            json={"shop_id": shop.id, "items": [{"product_id": stocked.id, "quantity": 1}]},
            headers=actor_headers(SHOP_OWNER_USER_ID + 5, "shop"),
        )
        assert response.status_code == 403

    def test_salesman_lists_only_own_distributions(self, client, db_session, stocked, salesman, make_salesman):
        other = make_salesman()
        for target in (salesman, other):
            client.post(
                "/api/distributions",
                json={
                    "distribution_type": "salesman",
                    "salesman_id": target.id,
                    "items": [{"product_id": stocked.id, "quantity": 1}],
                },
                headers=WAREHOUSE,
            )

        listed = client.get("/api/distributions", headers=actor_headers(salesman.id, "salesman")).get_json()

        assert [d["recipient_id"] for d in listed["distributions"]] == [salesman.id]


class TestLedgerCli:
    def test_seed_then_verify(self, app, db_session):
        runner = app.test_cli_runner()

        seeded = runner.invoke(args=["ledger", "seed-demo"])
        assert seeded.exit_code == 0, seeded.output
        assert "DONE Demo data ready" in seeded.output

        # Re-running does not receive opening stock twice
        runner.invoke(args=["ledger", "seed-demo"])
        assert db_session.query(StockAccount).count() == 3

        verified = runner.invoke(args=["ledger", "verify"])
        assert verified.exit_code == 0, verified.output
        assert "DONE 3 accounts consistent" in verified.output

    def test_verify_reports_drift(self, app, db_session, stocked):
        account = db_session.query(StockAccount).filter_by(product_id=stocked.id).one()
        account.current_stock = 5
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["ledger", "verify", "--product-id", str(stocked.id)])

        assert result.exit_code == 1
        assert "FAIL" in result.output

    def test_alerts_listing(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["ledger", "alerts"])
        assert result.exit_code == 0
        assert "No alerts found." in result.output
