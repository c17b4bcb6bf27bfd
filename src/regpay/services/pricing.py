"""Pricing service for program registrations and membership packages."""

from typing import TYPE_CHECKING, Any

from regpay.models import (
    ErrorCode,
    MembershipPackage,
    MembershipPrice,
    Program,
    ProgramPrice,
    RegistrationError,
    RegistrationSource,
)
from regpay.utils.email import normalize_email
from regpay.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)


class PricingService:
    """Resolves member vs non-member prices."""

    PROGRAMS_TABLE = "programs"
    PACKAGES_TABLE = "membership-packages"
    MEMBERS_TABLE = "members"

    def __init__(self, db: "DynamoDBService") -> None:
        """Initialize pricing service.

        Args:
            db: DynamoDB service instance
        """
        self.db = db

    def get_program(self, program_id: str) -> Program:
        """Get a program or raise PROGRAM_NOT_FOUND."""
        item = self.db.get_item(self.PROGRAMS_TABLE, {"program_id": program_id})
        if not item:
            raise RegistrationError(
                ErrorCode.PROGRAM_NOT_FOUND, details={"program_id": program_id}
            )
        return Program(
            program_id=item["program_id"],
            name=item.get("name", ""),
            member_price=_optional_int(item.get("member_price")),
            non_member_price=_optional_int(item.get("non_member_price")),
        )

    def get_package(self, membership_package_id: str) -> MembershipPackage:
        """Get a membership package or raise PACKAGE_NOT_FOUND."""
        item = self.db.get_item(
            self.PACKAGES_TABLE, {"membership_package_id": membership_package_id}
        )
        if not item:
            raise RegistrationError(
                ErrorCode.PACKAGE_NOT_FOUND,
                details={"membership_package_id": membership_package_id},
            )
        return MembershipPackage(
            membership_package_id=item["membership_package_id"],
            name=item.get("name", ""),
            price=_optional_int(item.get("price")),
        )

    def resolve_program_price(self, program_id: str, email: str) -> ProgramPrice:
        """Resolve the price a registrant pays for a program.

        Existing members (matched by normalized email) pay the member price,
        everyone else the non-member price.

        Args:
            program_id: Program to price
            email: Registrant email, normalized before lookup

        Returns:
            ProgramPrice with amount (None when the catalog has no price),
            source and the member ID when the registrant is a member

        Raises:
            RegistrationError: PROGRAM_NOT_FOUND for an unknown program
        """
        program = self.get_program(program_id)
        member = self.db.get_item(self.MEMBERS_TABLE, {"email": normalize_email(email)})

        if member:
            amount = program.member_price
            source = RegistrationSource.MEMBER
            member_id = member.get("member_id")
        else:
            amount = program.non_member_price
            source = RegistrationSource.NON_MEMBER
            member_id = None

        if amount is None:
            logger.warning(
                "Program %s has no %s price", program_id, source.value.lower()
            )

        return ProgramPrice(
            program_id=program.program_id,
            program_name=program.name,
            amount=amount,
            source=source,
            member_id=member_id,
        )

    def resolve_membership_price(self, membership_package_id: str) -> MembershipPrice:
        """Resolve the flat price of a membership package.

        Raises:
            RegistrationError: PACKAGE_NOT_FOUND for an unknown package
        """
        package = self.get_package(membership_package_id)
        if package.price is None:
            logger.warning("Membership package %s has no price", membership_package_id)
        return MembershipPrice(
            id=package.membership_package_id,
            name=package.name,
            amount=package.price,
        )


def _optional_int(value: Any) -> int | None:
    """DynamoDB returns numbers as Decimal."""
    return int(value) if value is not None else None
