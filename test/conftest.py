import sqlite3
import sys
from contextlib import contextmanager
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_repo(tmp_path: Path, name: str = "pos.db"):
    from jpos.repositories.sqlite_repo import SqliteRepository

    repo = SqliteRepository(tmp_path / name)
    repo.init_db()
    return repo


def add_product(repo, product_id: str = "ring-1", price: float = 1000.0, in_stock: int = 5, **extra) -> dict:
    record = {
        "id": product_id,
        "name": extra.pop("name", f"Product {product_id}"),
        "price": price,
        "category": extra.pop("category", "rings"),
        "inStock": in_stock,
        **extra,
    }
    repo.set(f"product:{product_id}", record)
    return record


def add_customer(repo, customer_id: str = "cust-1", discount: float = 0.0, total_purchases: float = 0.0) -> dict:
    record = {
        "id": customer_id,
        "name": "Olena",
        "phone": "+380501112233",
        "discount": discount,
        "totalPurchases": total_purchases,
    }
    repo.set(f"customer:{customer_id}", record)
    return record


def make_failing_repo(tmp_path: Path, fail_prefix: str = "sale:"):
    """A store whose transactional writes under ``fail_prefix`` hit an I/O error."""
    from jpos.repositories.sqlite_repo import KvTransaction, SqliteRepository

    class FailingTx(KvTransaction):
        def set(self, key, value):
            if key.startswith(fail_prefix):
                raise sqlite3.OperationalError("disk I/O error")
            super().set(key, value)

    class FailingRepo(SqliteRepository):
        failing = True

        @contextmanager
        def transaction(self):
            with super().transaction() as tx:
                yield FailingTx(tx._cur) if self.failing else tx

    repo = FailingRepo(tmp_path / "failing.db")
    repo.init_db()
    return repo
