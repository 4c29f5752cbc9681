"""Example usage of the CommitOrderCalculator.

This example orders the INSERTs of a small unit of work. A customer has a
nullable reference to its default address, while every address and order
has a NOT NULL reference to its customer. The nullable reference becomes a
relaxable edge, which lets the calculator break the customer/address cycle.
"""

from dataclasses import dataclass, field

from commit_order import CommitOrderCalculator, CycleDetectedError
from commit_order.config import get_config
from commit_order.log_config import (
    bind_correlation_id,
    configure_from_config,
    get_logger,
    unbind_correlation_id,
)


@dataclass(eq=False)
class Record:
    """A pending row and the rows it references."""

    table: str
    name: str
    references: list[tuple["Record", bool]] = field(default_factory=list)

    def refers_to(self, other: "Record", nullable: bool = False) -> None:
        self.references.append((other, nullable))


def build_unit_of_work() -> list[Record]:
    """Create the records of the example, in the order they were persisted."""
    customer = Record("customer", "alice")
    address = Record("address", "alice-home")
    order = Record("purchase_order", "order-1")

    customer.refers_to(address, nullable=True)
    address.refers_to(customer)
    order.refers_to(customer)

    return [order, address, customer]


def commit_order(records: list[Record], calculator: CommitOrderCalculator) -> list[Record]:
    """Compute the INSERT order of the given records.

    A referenced row must be inserted before the row referencing it, so the
    edge goes from the referenced record to the referencing one.
    """
    for record in records:
        calculator.add_node(id(record), record)

    for record in records:
        for referenced, nullable in record.references:
            calculator.add_dependency(id(referenced), id(record), relaxable=nullable)

    return calculator.sort()


def main() -> None:
    """Run the example with configuration taken from the environment."""
    config = get_config()
    configure_from_config(config)
    logger = get_logger(__name__)

    for warning in config.validate_config():
        logger.warning("configuration_warning", message=warning)

    bind_correlation_id("example-flush-1")
    try:
        records = build_unit_of_work()
        calculator = CommitOrderCalculator.from_config(config)

        try:
            ordered = commit_order(records, calculator)
        except CycleDetectedError as e:
            logger.error("flush_aborted", error=str(e))
            raise

        for position, record in enumerate(ordered, 1):
            logger.info("insert_scheduled", position=position, table=record.table, row=record.name)
    finally:
        unbind_correlation_id()


if __name__ == "__main__":
    main()
