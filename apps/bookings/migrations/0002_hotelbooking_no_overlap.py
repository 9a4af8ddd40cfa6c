"""Database-level guard against overlapping holds on PostgreSQL.

Adds an exclusion constraint so two PENDING/CONFIRMED reservations of the
same room can never share a night, even if application checks are
bypassed. Other database vendors rely on the coordinator's locked
conflict check alone.
"""

from django.db import migrations

CONSTRAINT_NAME = "hotelbooking_no_overlapping_holds"

EXTENSION_SQL = "CREATE EXTENSION IF NOT EXISTS btree_gist"

CREATE_SQL = f"""
ALTER TABLE bookings_hotelbooking
    ADD CONSTRAINT {CONSTRAINT_NAME}
    EXCLUDE USING gist (
        room_id WITH =,
        daterange(check_in, check_out, '[)') WITH &&
    )
    WHERE (status IN ('pending', 'confirmed'))
"""

DROP_SQL = f"ALTER TABLE bookings_hotelbooking DROP CONSTRAINT IF EXISTS {CONSTRAINT_NAME}"


def add_exclusion_constraint(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return
    schema_editor.execute(EXTENSION_SQL)
    schema_editor.execute(CREATE_SQL)


def drop_exclusion_constraint(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return
    schema_editor.execute(DROP_SQL)


class Migration(migrations.Migration):

    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(add_exclusion_constraint, drop_exclusion_constraint),
    ]
