"""
Demo data: organizational roles with sample tasks, the admin account and a
handful of demo users. Every step is idempotent across restarts.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from .auth import get_password_hash
from .db.models import Role, Task, User
from .db.session import get_db_session
from .schemas import Priority, TaskStatus, UserRole

logger = logging.getLogger(__name__)

ADMIN_ACCOUNT = ("admin", "admin")
DEMO_USERS = ["alice", "bob", "charlie", "diana", "eve"]
DEMO_PASSWORD = "password123"

C, H, M, L = Priority.CRITICAL, Priority.HIGH, Priority.MEDIUM, Priority.LOW
TODO, WIP, BLOCKED, DONE = TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED, TaskStatus.DONE

# role -> [(title, description, priority, status, due in N days)]
SEED_TASKS = {
    "HR": [
        ("Review new hire onboarding documents", "Process completed forms from last week's new hires", H, WIP, 2),
        ("Schedule quarterly safety training", "Coordinate with operations team for training dates", M, TODO, 14),
        ("Update employee handbook", "Add new policies regarding equipment usage", L, TODO, 30),
        ("Process payroll for month end", "Verify timesheets and submit for processing", C, WIP, -1),
        ("Conduct exit interviews", "Schedule interviews with departing employees", M, TODO, 7),
        ("Update benefits enrollment system", "Ensure all employees have access to new benefits portal", H, BLOCKED, 5),
        ("Review performance evaluation forms", "Update evaluation criteria for engineering roles", L, DONE, -5),
    ],
    "Admin": [
        ("Approve purchase orders for Q2 supplies", "Review and approve pending POs from operations", H, WIP, 1),
        ("Update facility access cards", "Issue new cards for recently hired staff", M, TODO, 3),
        ("Schedule vendor meeting", "Coordinate quarterly review with equipment suppliers", M, TODO, 10),
        ("Backup database systems", "Verify automated backups are running correctly", C, DONE, -1),
        ("Renew software licenses", "Process renewals for CAD and simulation tools", H, BLOCKED, -2),
        ("Update emergency contact list", "Ensure all departments have current emergency contacts", M, TODO, 7),
        ("Review security camera footage", "Check for any incidents from last week", L, TODO, 5),
        ("Organize quarterly all-hands meeting", "Book venue and send calendar invites", M, WIP, 21),
    ],
    "Process Engineer": [
        ("Optimize lithography process parameters", "Test new exposure settings to improve yield", C, WIP, 3),
        ("Analyze wafer defect data", "Review last batch results and identify patterns", H, TODO, 1),
        ("Update process documentation", "Document changes to etching procedure", M, TODO, 7),
        ("Calibrate metrology equipment", "Perform routine calibration on measurement tools", H, WIP, -1),
        ("Review new material specifications", "Evaluate alternative photoresist options", M, TODO, 14),
        ("Troubleshoot yield drop in Line 3", "Investigate recent yield decrease", C, BLOCKED, 2),
        ("Train new engineer on process flow", "Schedule onboarding sessions", M, TODO, 5),
        ("Complete quarterly process audit", "Review all process steps for compliance", H, DONE, -3),
    ],
    "Equipment Engineer": [
        ("Repair wafer handler in Bay 2", "Replace faulty robotic arm component", C, WIP, 1),
        ("Perform preventive maintenance on etcher", "Schedule PM for Etching Tool #5", H, TODO, 4),
        ("Install new vacuum pump", "Replace pump in deposition chamber", H, TODO, 6),
        ("Update equipment maintenance logs", "Document all recent repairs and PMs", M, WIP, 2),
        ("Order spare parts inventory", "Restock critical components", M, TODO, 10),
        ("Calibrate temperature sensors", "Verify accuracy of all thermal sensors", H, TODO, -2),
        ("Investigate equipment alarm frequency", "Analyze why alarms are triggering more often", C, BLOCKED, 3),
        ("Train technicians on new equipment", "Conduct training for recently installed tool", M, DONE, -7),
    ],
    "Operations/Technician": [
        ("Load wafers into processing line", "Prepare next batch for lithography", C, WIP, 0),
        ("Monitor process parameters", "Watch for any deviations during current run", H, WIP, 0),
        ("Clean processing chamber", "Perform routine cleaning after batch completion", H, TODO, 4),
        ("Record production metrics", "Log throughput and yield data", M, TODO, 1),
        ("Inspect wafers for defects", "Visual inspection of completed batch", H, TODO, 2),
        ("Restock consumables", "Replace photoresist and other materials", M, TODO, 3),
        ("Report equipment issues", "Document any problems observed during shift", H, DONE, -1),
        ("Attend safety briefing", "Participate in weekly safety meeting", M, BLOCKED, 5),
    ],
    "Logistics/Driver": [
        ("Deliver wafers to customer facility", "Transport completed batch to client", C, WIP, 0),
        ("Pick up raw materials from supplier", "Collect silicon wafers from vendor", H, TODO, 2),
        ("Schedule vehicle maintenance", "Book service appointment for delivery truck", M, TODO, 14),
        ("Update delivery logs", "Document all shipments from last week", M, WIP, 1),
        ("Coordinate with warehouse team", "Plan next week's delivery schedule", H, TODO, 3),
        ("Verify shipment documentation", "Check all paperwork before delivery", H, TODO, -1),
        ("Inspect vehicle condition", "Check truck before next delivery", M, DONE, -2),
    ],
}


def seed_roles_and_tasks(db: Session) -> int:
    """Create missing roles; sample tasks only go into roles created now"""
    now = datetime.utcnow()
    created = 0
    for role_name, tasks in SEED_TASKS.items():
        if db.query(Role.id).filter(Role.name == role_name).first():
            continue
        role = Role(name=role_name)
        db.add(role)
        db.flush()
        for title, description, priority, status, due_in in tasks:
            db.add(Task(
                role_id=role.id,
                title=title,
                description=description,
                priority=priority,
                status=status,
                due_date=now + timedelta(days=due_in),
            ))
        created += 1
    return created


def seed_users(db: Session) -> int:
    accounts = [(ADMIN_ACCOUNT[0], ADMIN_ACCOUNT[1], UserRole.ADMIN)]
    accounts += [(name, DEMO_PASSWORD, UserRole.USER) for name in DEMO_USERS]

    created = 0
    for username, password, role in accounts:
        if db.query(User.id).filter(User.username == username).first():
            continue
        db.add(User(
            username=username,
            password_hash=get_password_hash(password),
            role=role,
            is_active=True,
            reputation=0,
        ))
        created += 1
    return created


def seed_demo_data() -> None:
    """Ensure demo roles, tasks and users exist"""
    with get_db_session() as db:
        roles = seed_roles_and_tasks(db)
        users = seed_users(db)
    if roles or users:
        logger.info(f"Demo data ensured (roles created={roles}, users created={users})")
    else:
        logger.info("Demo data already present")
