"""
Fill a development database with fake schools, users, students, providers,
therapists, therapy services, reports and invoices.

One active user per role is created as <role>@example.com; every seeded user
gets the password "testpassword".

Usage:
  python scripts/seed.py
  python scripts/seed.py --students 50 --reports 20 --seed 42
  python scripts/seed.py --database-url sqlite:///dev.db --create-tables
"""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import asdict, dataclass, fields
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv
from faker import Faker
from werkzeug.security import generate_password_hash

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.rsm.models import Role, User  # noqa: E402
from app.rsm.modules.invoices.models import Invoice  # noqa: E402
from app.rsm.modules.invoices.service import STATUSES as INVOICE_STATUSES  # noqa: E402
from app.rsm.modules.providers.models import (  # noqa: E402
    Contact,
    Contract,
    Document,
    Provider,
    ProviderContact,
    ProviderContract,
    ProviderDocument,
)
from app.rsm.modules.providers.service import FEE_STRUCTURES, STATUSES as PROVIDER_STATUSES  # noqa: E402
from app.rsm.modules.reports.models import Report  # noqa: E402
from app.rsm.modules.reports.service import REPORT_TYPES  # noqa: E402
from app.rsm.modules.roles.service import ensure_roles  # noqa: E402
from app.rsm.modules.schools.models import School  # noqa: E402
from app.rsm.modules.students.models import Accommodation, Student, StudentAccommodation, StudentTeacher  # noqa: E402
from app.rsm.modules.students.service import CONFIRMATION_STATUSES, STATUSES as STUDENT_STATUSES  # noqa: E402
from app.rsm.modules.therapists.models import Therapist  # noqa: E402
from app.rsm.modules.therapy_services.models import TherapyService  # noqa: E402
from app.rsm.modules.therapy_services.service import (  # noqa: E402
    DELIVERY_MODES,
    SERVICE_TYPES,
    STATUSES as THERAPY_STATUSES,
)
from app.rsm.modules.users.service import SECURITY_LEVELS, STATUSES as USER_STATUSES  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402

PASSWORD = "testpassword"

ACCOMMODATIONS = (
    ("Extended time", "Time and a half on timed assessments."),
    ("Separate setting", "Testing in a small-group or individual room."),
    ("Read aloud", "Directions and items read aloud."),
    ("Large print", "Enlarged test booklet."),
    ("Frequent breaks", "Scheduled breaks between sections."),
    ("Scribe", "Responses dictated to a scribe."),
    ("Calculator", "Calculator permitted on non-calculator sections."),
    ("Braille", "Braille test materials."),
)


@dataclass
class SeedCounts:
    users: int = 200
    students: int = 500
    schools: int = 38
    providers: int = 8
    therapists: int = 8
    therapy_services: int = 200
    reports: int = 200
    invoices: int = 100
    documents: int = 20
    contracts: int = 10
    contacts: int = 15


def ensure_accommodations(s) -> list[Accommodation]:
    existing = {a.name: a for a in s.query(Accommodation).all()}
    for name, description in ACCOMMODATIONS:
        if name not in existing:
            existing[name] = Accommodation(name=name, description=description)
            s.add(existing[name])
    s.flush()
    return list(existing.values())


def _role_users(s, fake: Faker, roles: dict[str, Role], schools: list[School], password_hash: str) -> list[User]:
    users = []
    for name, role in roles.items():
        email = f"{name.lower()}@example.com"
        user = s.query(User).filter(User.email == email).one_or_none()
        if user is None:
            user = User(
                first_name=fake.first_name(),
                last_name=fake.last_name(),
                email=email,
                password_hash=password_hash,
                security_level="FULL_ACCESS",
                status="ACTIVE",
                school=fake.random_element(schools),
                role=role,
            )
            s.add(user)
        users.append(user)
    return users


def _pick(fake: Faker, rows: list, low: int, high: int) -> list:
    if not rows:
        return []
    k = fake.random_int(min(low, len(rows)), min(high, len(rows)))
    return fake.random_sample(rows, length=k)


def seed_database(s, counts: SeedCounts, fake: Faker) -> dict[str, int]:
    """Insert fake rows in dependency order. Returns how many rows of each kind were created."""
    password_hash = generate_password_hash(PASSWORD)
    # numbering continues after existing rows so repeated runs never collide on email
    offset = s.query(User).count()

    roles = ensure_roles(s)
    accommodations = ensure_accommodations(s)

    schools = [
        School(
            name=fake.company(),
            district=f"{fake.city()} County",
            state=fake.state(),
            contact_email=fake.email(),
            max_travel_distance=fake.random_int(0, 100),
            max_students_per_test=fake.random_int(0, 100),
        )
        for _ in range(max(counts.schools, 1))
    ]
    s.add_all(schools)

    users = _role_users(s, fake, roles, schools, password_hash)
    role_list = list(roles.values())
    for i in range(max(counts.users - len(users), 0)):
        first, last = fake.first_name(), fake.last_name()
        users.append(
            User(
                first_name=first,
                last_name=last,
                email=f"user-{offset + i}-{first}.{last}@example.net".lower(),
                phone_number=fake.phone_number() if fake.boolean() else None,
                password_hash=password_hash,
                security_level=fake.random_element(SECURITY_LEVELS),
                status=fake.random_element(USER_STATUSES),
                school=fake.random_element(schools),
                role=fake.random_element(role_list),
            )
        )
    s.add_all(users)
    s.flush()

    def with_role(name: str) -> list[User]:
        return [u for u in users if u.role_id == roles[name].id]

    teachers = with_role("TEACHER")
    students = []
    for _ in range(counts.students):
        student = Student(
            first_name=fake.first_name(),
            last_name=fake.last_name(),
            dob=fake.date_of_birth(minimum_age=5, maximum_age=18),
            grade_level=fake.random_int(1, 12),
            school=fake.random_element(schools),
            parent=fake.random_element(users),
            student_code=fake.numerify("##########"),
            status=fake.random_element(STUDENT_STATUSES),
            confirmation_status=fake.random_element(CONFIRMATION_STATUSES),
        )
        for accommodation in _pick(fake, accommodations, 1, 3):
            student.accommodations.append(
                StudentAccommodation(
                    accommodation=accommodation,
                    details={"notes": fake.sentence()} if fake.boolean() else None,
                )
            )
        for teacher in _pick(fake, teachers, 1, 2):
            student.teachers.append(StudentTeacher(teacher_id=teacher.id))
        students.append(student)
    s.add_all(students)

    provider_users = with_role("PROVIDER")
    providers = [
        Provider(
            user=fake.random_element(provider_users),
            license_number=fake.numerify("##########"),
            credentials=fake.numerify("##########"),
            signature=" ".join(fake.words()),
            service_fee_structure=fake.random_element(FEE_STRUCTURES),
            nss_enabled=fake.boolean(),
            review_notes={"notes": " ".join(fake.words())},
            status=fake.random_element(PROVIDER_STATUSES),
        )
        for _ in range(counts.providers)
    ]
    s.add_all(providers)
    s.flush()

    documents, contracts, contacts = [], [], []
    if providers:
        documents = [
            Document(
                provider_id=fake.random_element(providers).id,
                document=fake.file_path(depth=2),
                created_by_id=fake.random_element(users).id,
            )
            for _ in range(counts.documents)
        ]
        contracts = [
            Contract(
                provider_id=fake.random_element(providers).id,
                contract=fake.file_path(depth=2, extension="pdf"),
                created_by_id=fake.random_element(users).id,
            )
            for _ in range(counts.contracts)
        ]
        contacts = [
            Contact(
                provider_id=fake.random_element(providers).id,
                first_name=fake.first_name(),
                last_name=fake.last_name(),
                cell_phone=fake.phone_number(),
                work_phone=fake.phone_number(),
                email=fake.email(),
                created_by_id=fake.random_element(users).id,
            )
            for _ in range(counts.contacts)
        ]
        s.add_all([*documents, *contracts, *contacts])
        s.flush()
        for provider in providers:
            for document in _pick(fake, documents, 2, 4):
                provider.document_links.append(ProviderDocument(document=document))
            for contract in _pick(fake, contracts, 1, 3):
                provider.contract_links.append(ProviderContract(contract=contract))
            for contact in _pick(fake, contacts, 1, 3):
                provider.contact_links.append(ProviderContact(contact=contact))

    therapist_users = with_role("THERAPIST")
    therapists = [
        Therapist(
            user=therapist_users[i % len(therapist_users)],
            disciplines=", ".join(fake.random_sample(SERVICE_TYPES, length=fake.random_int(1, len(SERVICE_TYPES)))),
            license_number=fake.numerify("##########"),
            medicaid_national_provider_id=fake.random_int(1_000_000_000, 1_999_999_999),
            social_security=fake.ssn(),
            state_medicaid_provider_id=fake.random_int(100_000, 999_999),
            status="ACTIVE",
        )
        for i in range(counts.therapists)
    ]
    s.add_all(therapists)
    s.flush()

    therapy_services = []
    if students and providers:
        for _ in range(counts.therapy_services):
            session_date = fake.date_time_between(start_date="-30d", end_date="now")
            therapy_services.append(
                TherapyService(
                    student=fake.random_element(students),
                    provider=fake.random_element(providers),
                    service_type=fake.random_element(SERVICE_TYPES),
                    status=fake.random_element(THERAPY_STATUSES),
                    service_begin_date=session_date - timedelta(days=fake.random_int(1, 365)),
                    session_date=session_date,
                    session_notes=fake.paragraph(),
                    delivery_mode=fake.random_element(DELIVERY_MODES),
                    goal_tracking=(
                        {
                            "goals": [
                                {"goal": fake.sentence(), "progress": fake.random_int(0, 100)}
                                for _ in range(fake.random_int(1, 4))
                            ]
                        }
                        if fake.boolean()
                        else None
                    ),
                    ieps=(
                        {
                            "planDate": fake.past_date().isoformat(),
                            "objectives": [fake.sentence() for _ in range(fake.random_int(2, 5))],
                        }
                        if fake.boolean()
                        else None
                    ),
                    next_meeting_date=fake.future_datetime(end_date="+60d") if fake.boolean(70) else None,
                )
            )
        s.add_all(therapy_services)
        s.flush()

    reports, invoices = [], []
    if therapy_services:
        for _ in range(counts.reports):
            service = fake.random_element(therapy_services)
            reports.append(
                Report(
                    school=fake.random_element(schools),
                    student_id=service.student_id,
                    therapy_service_id=service.id,
                    report_type=fake.random_element(REPORT_TYPES),
                    content="\n\n".join(fake.paragraphs(3)),
                )
            )
        for _ in range(counts.invoices):
            service = fake.random_element(therapy_services)
            invoices.append(
                Invoice(
                    provider_id=service.provider_id,
                    student_id=service.student_id,
                    therapy_service_id=service.id,
                    amount=Decimal(fake.random_int(5_000, 250_000)) / 100,
                    status=fake.random_element(INVOICE_STATUSES),
                    date_issued=service.session_date + timedelta(days=fake.random_int(0, 14)),
                )
            )
        s.add_all([*reports, *invoices])
        s.flush()

    return {
        "schools": len(schools),
        "users": len(users),
        "accommodations": len(accommodations),
        "students": len(students),
        "providers": len(providers),
        "documents": len(documents),
        "contracts": len(contracts),
        "contacts": len(contacts),
        "therapists": len(therapists),
        "therapy_services": len(therapy_services),
        "reports": len(reports),
        "invoices": len(invoices),
    }


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Seed a development database with fake data.")
    p.add_argument("--database-url", help="Defaults to DATABASE_URL")
    p.add_argument("--create-tables", action="store_true", help="create_all() before seeding (throwaway databases)")
    p.add_argument("--seed", type=int, help="Faker seed for reproducible data")
    for f in fields(SeedCounts):
        p.add_argument(f"--{f.name.replace('_', '-')}", dest=f.name, type=int, default=f.default, metavar="N")
    return p


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = build_parser().parse_args(argv)
    db_url = (args.database_url or os.environ.get("DATABASE_URL") or "sqlite:///rsm.db").strip()
    counts = SeedCounts(**{f.name: max(getattr(args, f.name), 0) for f in fields(SeedCounts)})

    fake = Faker()
    if args.seed is not None:
        fake.seed_instance(args.seed)

    print(f"Seeding {db_url} ...", flush=True)
    with script_session(db_url, create_tables=args.create_tables) as s:
        created = seed_database(s, counts, fake)
    for name, n in created.items():
        print(f"  {name}: {n}")
    print(f"Role logins: <role>@example.com / {PASSWORD}")
    print(f"Requested counts: {asdict(counts)}")


if __name__ == "__main__":
    main()
