"""Tests for the routing function builder."""

from __future__ import annotations

from datetime import date

from pgsplit.core.tables import TableRef
from pgsplit.core.triggers import (
    PartitionRange,
    insert_trigger,
    order_ranges,
    placeholder_function,
    routing_function,
)


def _range(name: str, start: date) -> PartitionRange:
    return PartitionRange(TableRef("public", name), start)


EVENTS = TableRef("public", "events")

JAN = _range("events_202401", date(2024, 1, 1))
FEB = _range("events_202402", date(2024, 2, 1))
MAR = _range("events_202403", date(2024, 3, 1))
APR = _range("events_202404", date(2024, 4, 1))
MAY = _range("events_202405", date(2024, 5, 1))

TODAY = date(2024, 3, 1)


class TestOrderRanges:
    def test_current_future_then_past(self):
        """Hot ranges first: current, future ascending, past descending."""
        ordered = order_ranges([JAN, MAR, APR], TODAY)
        assert [r.table.name for r in ordered] == ["events_202403", "events_202404", "events_202401"]

    def test_full_window(self):
        ordered = order_ranges([MAY, JAN, APR, FEB, MAR], TODAY)
        assert ordered == [MAR, APR, MAY, FEB, JAN]

    def test_without_current(self):
        assert order_ranges([JAN, APR], TODAY) == [APR, JAN]


class TestRoutingFunction:
    def test_no_partitions(self):
        assert routing_function(EVENTS, "created_at", "month", "date", [], TODAY) is None

    def test_definition(self):
        sql = routing_function(EVENTS, "created_at", "month", "date", [JAN, MAR], TODAY)
        assert sql == (
            'CREATE OR REPLACE FUNCTION "public"."events_insert_trigger"()\n'
            "    RETURNS trigger AS $$\n"
            "    BEGIN\n"
            """        IF (NEW."created_at" >= '2024-03-01'::date AND NEW."created_at" < '2024-04-01'::date) THEN\n"""
            '            INSERT INTO "public"."events_202403" VALUES (NEW.*);\n'
            """        ELSIF (NEW."created_at" >= '2024-01-01'::date AND NEW."created_at" < '2024-02-01'::date) THEN\n"""
            '            INSERT INTO "public"."events_202401" VALUES (NEW.*);\n'
            "        ELSE\n"
            "            RAISE EXCEPTION 'Date out of range. Ensure partitions are created.';\n"
            "        END IF;\n"
            "        RETURN NULL;\n"
            "    END;\n"
            "    $$ LANGUAGE plpgsql;"
        )

    def test_input_order_does_not_matter(self):
        a = routing_function(EVENTS, "c", "month", "timestamptz", [JAN, MAR, APR], TODAY)
        b = routing_function(EVENTS, "c", "month", "timestamptz", [APR, JAN, MAR], TODAY)
        assert a == b


class TestPlaceholders:
    def test_placeholder_rejects_inserts(self):
        sql = placeholder_function(EVENTS)
        assert sql.startswith('CREATE FUNCTION "public"."events_insert_trigger"()')
        assert "RAISE EXCEPTION 'Create partitions first.';" in sql

    def test_insert_trigger(self):
        sql = insert_trigger(EVENTS, TableRef("public", "events_intermediate"))
        assert sql == (
            'CREATE TRIGGER "events_insert_trigger"\n'
            '    BEFORE INSERT ON "public"."events_intermediate"\n'
            '    FOR EACH ROW EXECUTE PROCEDURE "public"."events_insert_trigger"();'
        )
