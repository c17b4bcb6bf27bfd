"""Durable registration and payment store.

Payments are keyed by order ID, program registrations by (email, program_id),
members and users by email. Settlements run as DynamoDB transactions whose
payment write is conditional, so concurrent webhooks for one order resolve to
a single payment row.
"""

import datetime as dt
import json
import os
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

import bcrypt

from regpay.models import (
    ErrorCode,
    Member,
    MembershipIntent,
    MemberStatus,
    Payment,
    PaymentGateway,
    PaymentMethod,
    PaymentStatus,
    ProgramIntent,
    ProgramRegistration,
    RegistrationError,
    RegistrationSource,
    User,
    UserRole,
)
from regpay.utils.email import normalize_email
from regpay.utils.logging import get_logger

from .dynamodb import DynamoDBService

logger = get_logger(__name__)

DEFAULT_MEMBER_PASSWORD = "Password123!"
DEFAULT_MEMBER_SEGMENT = "BASIC"

# One rebuild after a concurrent registration/member write, one after a
# concurrent payment create.
COMMIT_ATTEMPTS = 3

_UNLINKED = (
    "attribute_exists(order_id) AND attribute_not_exists(registration_id) "
    "AND attribute_not_exists(member_id)"
)


def merge_interest_areas(existing: Iterable[str], incoming: Iterable[str]) -> list[str]:
    """Union of interest areas, keeping first-seen order."""
    merged: list[str] = []
    for area in [*existing, *incoming]:
        if area and area not in merged:
            merged.append(area)
    return merged


class RegistrationStore:
    """System of record for payments, program registrations, members and users."""

    PAYMENTS_TABLE = "payments"
    REGISTRATIONS_TABLE = "program-registrations"
    MEMBERS_TABLE = "members"
    USERS_TABLE = "users"

    def __init__(self, db: DynamoDBService, default_password: str | None = None) -> None:
        """Initialize the store.

        Args:
            db: DynamoDB service instance
            default_password: Password for users created at membership
                settlement. Defaults to MEMBER_DEFAULT_PASSWORD.
        """
        self.db = db
        self._default_password = default_password or os.environ.get(
            "MEMBER_DEFAULT_PASSWORD", DEFAULT_MEMBER_PASSWORD
        )

    # Payments

    def get_payment(self, order_id: str) -> Payment | None:
        item = self.db.get_item(self.PAYMENTS_TABLE, {"order_id": order_id})
        return _item_to_payment(item) if item else None

    def create_payment(self, payment: Payment) -> bool:
        """Create a payment row unless one already exists for the order.

        Returns:
            True if created, False if the order already has a payment
        """
        return self.db.put_item(
            self.PAYMENTS_TABLE,
            _payment_to_item(payment),
            condition_expression="attribute_not_exists(order_id)",
        )

    def update_payment_status(
        self,
        order_id: str,
        *,
        status: PaymentStatus,
        raw_payload: dict[str, Any],
        transaction_id: str | None = None,
        method: PaymentMethod | None = None,
        paid_at: dt.datetime | None = None,
    ) -> Payment | None:
        """Move an existing payment to a new status.

        Returns:
            The updated payment, or None if the order has no payment row
        """
        values = _status_values(status, raw_payload, transaction_id, method, paid_at)
        attrs = self.db.update_item(
            self.PAYMENTS_TABLE,
            {"order_id": order_id},
            "SET " + ", ".join(values.assignments),
            values.values,
            values.names,
            condition_expression="attribute_exists(order_id)",
        )
        return _item_to_payment(attrs) if attrs else None

    # Registrations, members, users

    def get_program_registration(
        self, email: str, program_id: str
    ) -> ProgramRegistration | None:
        item = self.db.get_item(
            self.REGISTRATIONS_TABLE,
            {"email": normalize_email(email), "program_id": program_id},
        )
        if not item:
            return None
        return ProgramRegistration(
            registration_id=item["registration_id"],
            email=item["email"],
            program_id=item["program_id"],
            name=item.get("name", ""),
            phone=item.get("phone"),
            institution=item.get("institution"),
            segment=item.get("segment"),
            member_id=item.get("member_id"),
            user_id=item.get("user_id"),
            source=RegistrationSource(item.get("source", RegistrationSource.NON_MEMBER.value)),
            created_at=dt.datetime.fromisoformat(item["created_at"]),
        )

    def get_member(self, email: str) -> Member | None:
        item = self.db.get_item(self.MEMBERS_TABLE, {"email": normalize_email(email)})
        if not item:
            return None
        return Member(
            member_id=item["member_id"],
            email=item["email"],
            name=item.get("name", ""),
            phone=item.get("phone"),
            institution=item.get("institution"),
            segment=item.get("segment"),
            degree=item.get("degree"),
            student_id=item.get("student_id"),
            interest_areas=list(item.get("interest_areas") or []),
            membership_package_id=item.get("membership_package_id"),
            status=MemberStatus(item.get("status", MemberStatus.ACTIVE.value)),
            user_id=item.get("user_id"),
            join_date=_optional_datetime(item.get("join_date")),
            created_at=dt.datetime.fromisoformat(item["created_at"]),
        )

    def get_user(self, email: str) -> User | None:
        item = self.db.get_item(self.USERS_TABLE, {"email": normalize_email(email)})
        if not item:
            return None
        return User(
            user_id=item["user_id"],
            email=item["email"],
            name=item.get("name", ""),
            phone=item.get("phone"),
            role=UserRole(item.get("role", UserRole.USER.value)),
            is_email_verified=bool(item.get("is_email_verified", False)),
            created_at=dt.datetime.fromisoformat(item["created_at"]),
        )

    def check_email_registration(
        self, email: str, purpose: Literal["program", "membership"] = "program"
    ) -> dict[str, Any]:
        """Tell a checkout form what the platform already knows about an email.

        For program checkouts any user or member is reported; for membership
        checkouts only users that are not yet members.

        Returns:
            ``{"type": "user" | "member" | "unregistered", "result": [...]}``
        """
        user = self.get_user(email)
        member = self.get_member(email)

        if purpose == "membership":
            if user and not member:
                return {"type": "user", "result": [_user_summary(user, has_member=False)]}
            return {"type": "unregistered", "result": []}

        if user:
            return {
                "type": "user",
                "result": [_user_summary(user, has_member=member is not None)],
            }
        if member:
            return {
                "type": "member",
                "result": [
                    {
                        "email": member.email,
                        "name": member.name,
                        "phone": member.phone,
                        "segment": member.segment,
                        "institution": member.institution,
                    }
                ],
            }
        return {"type": "unregistered", "result": []}

    # Settlement

    def commit_program_settlement(self, intent: ProgramIntent, payment: Payment) -> Payment:
        """Atomically create the payment linked to a (new or reused) registration."""
        return self._settle(payment, lambda p, link: self._program_ops(intent, p, link), link=False)

    def link_program_settlement(self, intent: ProgramIntent, payment: Payment) -> Payment:
        """Atomically settle an existing, unlinked payment against a registration."""
        return self._settle(payment, lambda p, link: self._program_ops(intent, p, link), link=True)

    def commit_membership_settlement(
        self, intent: MembershipIntent, payment: Payment
    ) -> Payment:
        """Atomically create the payment linked to a (new or updated) member and user."""
        return self._settle(
            payment, lambda p, link: self._membership_ops(intent, p, link), link=False
        )

    def link_membership_settlement(
        self, intent: MembershipIntent, payment: Payment
    ) -> Payment:
        """Atomically settle an existing, unlinked payment against a member."""
        return self._settle(
            payment, lambda p, link: self._membership_ops(intent, p, link), link=True
        )

    def _settle(
        self,
        payment: Payment,
        build: Callable[[Payment, bool], tuple[list[dict[str, Any]], Payment]],
        *,
        link: bool,
    ) -> Payment:
        """Run a settlement transaction, resolving races by re-reading.

        Raises:
            RegistrationError: COMMIT_FAILED when the transaction keeps
                being cancelled without a concurrent winner to return
        """
        for attempt in range(1, COMMIT_ATTEMPTS + 1):
            ops, settled = build(payment, link)
            if self.db.transact_write(ops):
                return settled

            current = self.get_payment(payment.order_id)
            if current is not None and current.is_linked:
                logger.info(
                    "Order %s was settled concurrently, returning existing payment",
                    payment.order_id,
                )
                return current
            if current is not None and not link:
                # A pending row was created concurrently; settle it in place.
                link = True
            logger.warning(
                "Settlement transaction for %s cancelled (attempt %d/%d)",
                payment.order_id,
                attempt,
                COMMIT_ATTEMPTS,
            )

        raise RegistrationError(
            ErrorCode.COMMIT_FAILED, details={"order_id": payment.order_id}
        )

    def _program_ops(
        self, intent: ProgramIntent, payment: Payment, link: bool
    ) -> tuple[list[dict[str, Any]], Payment]:
        email = normalize_email(intent.email)
        now = _now()
        ops: list[dict[str, Any]] = []

        existing = self.get_program_registration(email, intent.program_id)
        if existing:
            registration_id = existing.registration_id
            ops.append(
                self.db.condition_check_op(
                    self.REGISTRATIONS_TABLE,
                    {"email": email, "program_id": intent.program_id},
                    "attribute_exists(registration_id)",
                )
            )
        else:
            registration_id = str(uuid.uuid4())
            source = (
                RegistrationSource.MEMBER
                if intent.source == RegistrationSource.ADMIN
                else intent.source
            )
            ops.append(
                self.db.put_op(
                    self.REGISTRATIONS_TABLE,
                    _compact(
                        {
                            "email": email,
                            "program_id": intent.program_id,
                            "registration_id": registration_id,
                            "name": intent.name,
                            "phone": intent.phone,
                            "institution": intent.institution,
                            "segment": intent.segment,
                            "member_id": intent.member_id,
                            "user_id": intent.user_id,
                            "source": source.value,
                            "created_at": now.isoformat(),
                        }
                    ),
                    condition_expression="attribute_not_exists(email)",
                )
            )

        settled = payment.model_copy(
            update={
                "email": email,
                "registration_id": registration_id,
                "member_id": payment.member_id or intent.member_id,
                "updated_at": now,
            }
        )
        ops.append(self._payment_op(settled, link))
        return ops, settled

    def _membership_ops(
        self, intent: MembershipIntent, payment: Payment, link: bool
    ) -> tuple[list[dict[str, Any]], Payment]:
        email = normalize_email(intent.email)
        now = _now()
        ops: list[dict[str, Any]] = []

        user = self.get_user(email)
        if user is None:
            user_id = intent.user_id or str(uuid.uuid4())
            ops.append(
                self.db.put_op(
                    self.USERS_TABLE,
                    _compact(
                        {
                            "email": email,
                            "user_id": user_id,
                            "name": intent.name,
                            "phone": intent.phone,
                            "role": UserRole.MEMBER.value,
                            "password_hash": self._hash_default_password(),
                            "is_email_verified": True,
                            "created_at": now.isoformat(),
                        }
                    ),
                    condition_expression="attribute_not_exists(email)",
                )
            )
        elif user.role != UserRole.MEMBER:
            user_id = user.user_id
            ops.append(
                self.db.update_op(
                    self.USERS_TABLE,
                    {"email": email},
                    "SET #role = :role, updated_at = :now",
                    {":role": UserRole.MEMBER.value, ":now": now.isoformat()},
                    {"#role": "role"},
                    condition_expression="attribute_exists(email)",
                )
            )
        else:
            # Already MEMBER
            user_id = user.user_id
            ops.append(
                self.db.condition_check_op(
                    self.USERS_TABLE, {"email": email}, "attribute_exists(email)"
                )
            )

        member = self.get_member(email)
        if member is None:
            member_id = str(uuid.uuid4())
            ops.append(
                self.db.put_op(
                    self.MEMBERS_TABLE,
                    _compact(
                        {
                            "email": email,
                            "member_id": member_id,
                            "name": intent.name,
                            "phone": intent.phone,
                            "institution": intent.institution,
                            "segment": intent.segment or DEFAULT_MEMBER_SEGMENT,
                            "degree": intent.degree,
                            "student_id": intent.student_id,
                            "interest_areas": merge_interest_areas([], intent.interest_areas),
                            "membership_package_id": intent.membership_package_id,
                            "status": MemberStatus.ACTIVE.value,
                            "user_id": user_id,
                            "join_date": (intent.join_date or now).isoformat(),
                            "created_at": now.isoformat(),
                        }
                    ),
                    condition_expression="attribute_not_exists(email)",
                )
            )
        else:
            member_id = member.member_id
            ops.append(self._member_update_op(member, intent, user_id, now))

        settled = payment.model_copy(
            update={"email": email, "member_id": member_id, "updated_at": now}
        )
        ops.append(self._payment_op(settled, link))
        return ops, settled

    def _member_update_op(
        self,
        member: Member,
        intent: MembershipIntent,
        user_id: str,
        now: dt.datetime,
    ) -> dict[str, Any]:
        assignments = [
            "interest_areas = :areas",
            "membership_package_id = :package",
            "#status = :active",
            "user_id = if_not_exists(user_id, :user_id)",
            "updated_at = :now",
        ]
        values: dict[str, Any] = {
            ":member_id": member.member_id,
            ":areas": merge_interest_areas(member.interest_areas, intent.interest_areas),
            ":package": intent.membership_package_id,
            ":active": MemberStatus.ACTIVE.value,
            ":user_id": user_id,
            ":now": now.isoformat(),
        }
        names = {"#status": "status"}
        for attr in ("phone", "institution", "segment", "degree", "student_id"):
            value = getattr(intent, attr)
            if value is not None:
                assignments.append(f"#{attr} = if_not_exists(#{attr}, :{attr})")
                values[f":{attr}"] = value
                names[f"#{attr}"] = attr

        return self.db.update_op(
            self.MEMBERS_TABLE,
            {"email": member.email},
            "SET " + ", ".join(assignments),
            values,
            names,
            condition_expression="member_id = :member_id",
        )

    def _payment_op(self, payment: Payment, link: bool) -> dict[str, Any]:
        if not link:
            return self.db.put_op(
                self.PAYMENTS_TABLE,
                _payment_to_item(payment),
                condition_expression="attribute_not_exists(order_id)",
            )

        values = _status_values(
            payment.status,
            payment.raw_payload,
            payment.gateway_transaction_id,
            payment.method,
            payment.paid_at,
        )
        assignments = [*values.assignments, "email = :email"]
        values.values[":email"] = payment.email
        if payment.registration_id:
            assignments.append("registration_id = :registration_id")
            values.values[":registration_id"] = payment.registration_id
        if payment.member_id:
            assignments.append("member_id = :member_id")
            values.values[":member_id"] = payment.member_id

        return self.db.update_op(
            self.PAYMENTS_TABLE,
            {"order_id": payment.order_id},
            "SET " + ", ".join(assignments),
            values.values,
            values.names,
            condition_expression=_UNLINKED,
        )

    def _hash_default_password(self) -> str:
        return bcrypt.hashpw(self._default_password.encode("utf-8"), bcrypt.gensalt()).decode(
            "utf-8"
        )


@dataclass
class _StatusValues:
    """Update expression parts for a payment status change."""

    assignments: list[str] = field(default_factory=list)
    values: dict[str, Any] = field(default_factory=dict)
    names: dict[str, str] = field(default_factory=dict)


def _status_values(
    status: PaymentStatus,
    raw_payload: dict[str, Any],
    transaction_id: str | None,
    method: PaymentMethod | None,
    paid_at: dt.datetime | None,
) -> _StatusValues:
    parts = _StatusValues()
    parts.assignments += ["#status = :status", "raw_payload = :raw", "updated_at = :now"]
    parts.values.update(
        {
            ":status": status.value,
            ":raw": json.dumps(raw_payload, default=str),
            ":now": _now().isoformat(),
        }
    )
    parts.names["#status"] = "status"
    if transaction_id:
        parts.assignments.append("gateway_transaction_id = :tx")
        parts.values[":tx"] = transaction_id
    if method:
        parts.assignments.append("#method = :method")
        parts.values[":method"] = method.value
        parts.names["#method"] = "method"
    if paid_at:
        parts.assignments.append("paid_at = :paid_at")
        parts.values[":paid_at"] = paid_at.isoformat()
    return parts


def _now() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


def _compact(item: dict[str, Any]) -> dict[str, Any]:
    """Drop None values so absent attributes stay absent."""
    return {k: v for k, v in item.items() if v is not None}


def _optional_datetime(value: str | None) -> dt.datetime | None:
    return dt.datetime.fromisoformat(value) if value else None


def _user_summary(user: User, *, has_member: bool) -> dict[str, Any]:
    return {
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "member": has_member,
    }


def _payment_to_item(payment: Payment) -> dict[str, Any]:
    return _compact(
        {
            "order_id": payment.order_id,
            "email": payment.email,
            "amount": payment.amount,
            "currency": payment.currency,
            "method": payment.method.value if payment.method else None,
            "gateway": payment.gateway.value if payment.gateway else None,
            "status": payment.status.value,
            "raw_payload": json.dumps(payment.raw_payload, default=str),
            "gateway_transaction_id": payment.gateway_transaction_id,
            "paid_at": payment.paid_at.isoformat() if payment.paid_at else None,
            "registration_id": payment.registration_id,
            "member_id": payment.member_id,
            "created_at": payment.created_at.isoformat(),
            "updated_at": payment.updated_at.isoformat() if payment.updated_at else None,
        }
    )


def _item_to_payment(item: dict[str, Any]) -> Payment:
    raw = item.get("raw_payload")
    return Payment(
        order_id=item["order_id"],
        email=item.get("email", ""),
        amount=int(item.get("amount", 0)),
        currency=item.get("currency", "IDR"),
        method=PaymentMethod(item["method"]) if item.get("method") else None,
        gateway=PaymentGateway(item["gateway"]) if item.get("gateway") else None,
        status=PaymentStatus(item["status"]),
        raw_payload=json.loads(raw) if raw else {},
        gateway_transaction_id=item.get("gateway_transaction_id"),
        paid_at=_optional_datetime(item.get("paid_at")),
        registration_id=item.get("registration_id"),
        member_id=item.get("member_id"),
        created_at=dt.datetime.fromisoformat(item["created_at"]),
        updated_at=_optional_datetime(item.get("updated_at")),
    )
