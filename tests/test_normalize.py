from vaultops.core.entities import NamedEntity, PermissionEntry
from vaultops.core.normalize import (
    CONTAINER_SCHEMA,
    GROUP_SCHEMA,
    container_detail,
    decode_field,
    entity_from_text_line,
    normalize,
)
from vaultops.core.payloads import StructuredList, StructuredSingle, TextLines
from vaultops.core.run_context import RunContext


def test_structured_list_maps_team_fields():
    payload = StructuredList(items=({"team_uid": "T1", "name": "Sales"},))

    assert normalize(payload, GROUP_SCHEMA) == [NamedEntity(name="Sales", uid="T1")]


def test_text_table_strips_permission_and_size_tail():
    payload = TextLines(lines=("Team UID  Team Name  Flags  Members", "T2  Engineering  RW  10"))

    assert normalize(payload, GROUP_SCHEMA) == [NamedEntity(name="Engineering", uid="T2")]


def test_structured_aliases_are_tried_in_order():
    payload = StructuredList(
        items=(
            {"uid": "T1", "team_name": "Ops"},
            {"folder_uid": "F1", "folder_name": "Finance"},
        )
    )

    assert normalize(payload, GROUP_SCHEMA)[0] == NamedEntity(name="Ops", uid="T1")
    assert normalize(payload, CONTAINER_SCHEMA) == [NamedEntity(name="Finance", uid="F1")]


def test_entries_missing_fields_are_skipped_and_counted():
    ctx = RunContext()
    payload = StructuredList(
        items=(
            {"shared_folder_uid": "SF1", "name": "Kept"},
            {"name": "No uid"},
            {"shared_folder_uid": "SF3"},
            {"shared_folder_uid": "unknown", "name": "Sentinel"},
            {"shared_folder_uid": "  ", "name": "Blank"},
        )
    )

    entities = normalize(payload, CONTAINER_SCHEMA, ctx)

    assert entities == [NamedEntity(name="Kept", uid="SF1")]
    assert ctx.counters.skipped_entities == 4


def test_single_object_is_one_entity():
    payload = StructuredSingle(item={"shared_folder_uid": "SF1", "name": "Legal"})

    assert normalize(payload, CONTAINER_SCHEMA) == [NamedEntity(name="Legal", uid="SF1")]


def test_single_wrapper_object_is_unwrapped():
    payload = StructuredSingle(
        item={"teams": [{"team_uid": "T1", "name": "A"}, {"team_uid": "T2", "name": "B"}]}
    )

    assert [e.uid for e in normalize(payload, GROUP_SCHEMA)] == ["T1", "T2"]


def test_text_table_with_row_numbers_and_separator():
    payload = TextLines(
        lines=(
            "  #  Shared Folder UID       Name",
            "---  ----------------------  ----------------",
            "  1  AbCdEfGhIjKlMnOpQrStUv  Finance Team",
            "",
            "  2  ZyXwVuTsRqPoNmLkJiHgFe  HR  Payroll",
        )
    )

    assert normalize(payload, CONTAINER_SCHEMA) == [
        NamedEntity(name="Finance Team", uid="AbCdEfGhIjKlMnOpQrStUv"),
        NamedEntity(name="HR  Payroll", uid="ZyXwVuTsRqPoNmLkJiHgFe"),
    ]


def test_text_line_keeps_one_name_column():
    entity = entity_from_text_line("T4  R  W  -", GROUP_SCHEMA)

    assert entity == NamedEntity(name="R", uid="T4")


def test_text_line_without_name_is_skipped():
    ctx = RunContext()

    assert entity_from_text_line("T5", GROUP_SCHEMA, ctx) is None
    assert ctx.counters.skipped_entities == 1


def test_decode_field_reports_missing():
    assert decode_field({"name": ""}, ("name", "team_name")).missing is True
    found = decode_field({"team_name": "Ops"}, ("name", "team_name"))
    assert (found.value, found.alias) == ("Ops", "team_name")


def test_container_detail_reads_team_permissions():
    payload = StructuredSingle(
        item={
            "shared_folder_uid": "SF1",
            "name": "Finance",
            "teams": [
                {"team_uid": "T1", "name": "Sales", "manage_users": True, "manage_records": False},
                {"team_name": "Legal"},
                {"manage_users": True},
            ],
        }
    )

    detail = container_detail(payload, "SF1")

    assert detail is not None
    assert detail.entity == NamedEntity(name="Finance", uid="SF1")
    assert detail.permissions == (
        PermissionEntry(group_uid="T1", group_name="Sales", manage_users=True, manage_records=False),
        PermissionEntry(group_uid=None, group_name="Legal"),
    )


def test_container_detail_rejects_text_and_foreign_json():
    assert container_detail(TextLines(lines=("Shared Folder: SF1",)), "SF1") is None
    assert container_detail(StructuredSingle(item={"record_uid": "R1"}), "SF1") is None


def test_all_digit_uid_is_kept_without_row_number_header():
    payload = TextLines(lines=("UID  Name  Perm  Size", "2  Engineering  RW  10"))

    assert normalize(payload, GROUP_SCHEMA) == [NamedEntity(name="Engineering", uid="2")]


def test_row_number_dropped_only_when_requested():
    line = "7  12345  Finance"

    assert entity_from_text_line(line, CONTAINER_SCHEMA) == NamedEntity(
        name="12345  Finance", uid="7"
    )
    assert entity_from_text_line(line, CONTAINER_SCHEMA, numbered=True) == NamedEntity(
        name="Finance", uid="12345"
    )
