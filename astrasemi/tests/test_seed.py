"""
Demo data seeding tests.
"""

from astrasemi.auth import verify_password
from astrasemi.db.models import Role, Task, User
from astrasemi.schemas import UserRole
from astrasemi.seed import DEMO_USERS, SEED_TASKS, seed_demo_data


def test_seed_is_idempotent(db):
    seed_demo_data()
    seed_demo_data()

    assert db.query(Role).count() == len(SEED_TASKS)
    assert db.query(Task).count() == sum(len(tasks) for tasks in SEED_TASKS.values())
    assert db.query(User).count() == len(DEMO_USERS) + 1

    admin = db.query(User).filter(User.username == "admin").one()
    assert admin.role == UserRole.ADMIN
    assert verify_password("admin", admin.password_hash)

    alice = db.query(User).filter(User.username == "alice").one()
    assert alice.role == UserRole.USER
    assert verify_password("password123", alice.password_hash)


def test_seed_keeps_existing_roles_untouched(db):
    db.add(Role(name="HR"))
    db.commit()

    seed_demo_data()

    hr = db.query(Role).filter(Role.name == "HR").one()
    assert db.query(Task).filter(Task.role_id == hr.id).count() == 0
    assert db.query(Role).count() == len(SEED_TASKS)
