# Overview: Threaded invoice creation against a file-backed SQLite database.

"""
Concurrent invoice tests.

Run with:
    pytest backend/tests/test_concurrency.py
"""
import os
import tempfile
import threading
import unittest

from mobilepos import create_app
from mobilepos.config import Config
from mobilepos.errors import EngineError, InsufficientStockError
from mobilepos.extensions import db
from mobilepos.models import Product, Invoice
from mobilepos.services import invoice_service


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")

        class FileConfig(Config):
            TESTING = True
            SQLALCHEMY_DATABASE_URI = f"sqlite:///{db_path}"

        self.app = create_app(FileConfig)

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            product = Product(
                name="Type-C Cable",
                brand="boAt",
                category="Cables",
                purchase_price=80,
                selling_price=199,
                gst_percent=18,
                stock_quantity=5,
                track_imei=False,
            )
            db.session.add(product)
            db.session.commit()
            self.product_id = product.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_workers(self, count, quantity):
        created = []
        errors = []
        lock = threading.Lock()

        def worker(n):
            with self.app.app_context():
                try:
                    invoice = invoice_service.create_invoice(
                        {"name": f"Walk-in {n}", "mobile": f"90000000{n:02d}"},
                        [{"product_id": self.product_id, "quantity": quantity}],
                    )
                    with lock:
                        created.append(invoice.invoice_number)
                except EngineError as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return created, errors

    def test_invoice_numbers_unique(self):
        with self.app.app_context():
            product = db.session.get(Product, self.product_id)
            product.stock_quantity = 100
            db.session.commit()

        created, errors = self._run_workers(10, 1)

        self.assertEqual(len(created), len(set(created)))
        with self.app.app_context():
            self.assertEqual(db.session.query(Invoice).count(), len(created))
            self.assertEqual(db.session.get(Product, self.product_id).stock_quantity, 100 - len(created))

    def test_concurrent_sales_never_oversell(self):
        workers = 8
        with self.app.app_context():
            product = db.session.get(Product, self.product_id)
            product.stock_quantity = workers - 1
            db.session.commit()

        created, errors = self._run_workers(workers, 1)

        self.assertEqual(len(created), workers - 1)
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], InsufficientStockError)
        with self.app.app_context():
            self.assertEqual(db.session.get(Product, self.product_id).stock_quantity, 0)
            self.assertEqual(db.session.query(Invoice).count(), workers - 1)


if __name__ == "__main__":
    unittest.main()
