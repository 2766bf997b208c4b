"""
Test suite for many-to-many relations through pivot collections.

Version: 1.0
"""

# External imports with versions
import pytest  # pytest v7.3+
import dataclasses
from bson import ObjectId

# Internal imports
import docmapper
from docmapper.core.exceptions import RelationNotFoundException
from docmapper.relations import BelongsToMany, Pivot, PivotRelation, belongs_to_many
from docmapper.relations.descriptors import joining_table
from tests.models import Group, Role, User

JOHN = ObjectId("507f1f77bcf86cd799439011")
JANE = ObjectId("507f1f77bcf86cd799439012")
BOB = ObjectId("507f1f77bcf86cd799439013")

ADMIN = ObjectId("65a000000000000000000001")
EDITOR = ObjectId("65a000000000000000000002")
VIEWER = ObjectId("65a000000000000000000003")

STAFF = ObjectId("65b000000000000000000001")


@pytest.fixture
def seeded(mongodb):
    """Users, roles and the role_user pivot rows linking them."""
    mongodb.users.insert_many([
        {"_id": JOHN, "name": "John"},
        {"_id": JANE, "name": "Jane"},
        {"_id": BOB, "name": "Bob"},
    ])
    mongodb.roles.insert_many([
        {"_id": ADMIN, "name": "admin"},
        {"_id": EDITOR, "name": "editor"},
        {"_id": VIEWER, "name": "viewer"},
    ])
    mongodb.role_user.insert_many([
        {"user_id": str(JOHN), "role_id": str(ADMIN), "granted_by": "root"},
        {"user_id": str(JOHN), "role_id": str(EDITOR)},
        {"user_id": str(JANE), "role_id": str(EDITOR), "granted_by": "john"},
    ])
    return mongodb


def load_user(key):
    return User.new_from_document({"_id": key, "name": "user"})


class TestDescriptor:

    def test_defaults_are_resolved_from_models(self):
        descriptor = User.relationships["roles"].resolve(User())
        assert descriptor.related is Role
        assert descriptor.table == "role_user"
        assert descriptor.foreign_pivot_key == "user_id"
        assert descriptor.related_pivot_key == "role_id"
        assert descriptor.pivot_key_type == "string"
        assert descriptor.pivot_columns == ("granted_by",)
        assert descriptor.kind == "belongs_to_many"

    def test_reverse_relation_uses_same_table(self):
        descriptor = Role.relationships["users"].resolve(Role())
        assert descriptor.table == "role_user"
        assert descriptor.foreign_pivot_key == "role_id"
        assert descriptor.related_pivot_key == "user_id"

    def test_explicit_names_are_kept(self):
        descriptor = Group.relationships["members"].resolve(Group())
        assert descriptor.table == "group_members"
        assert descriptor.foreign_pivot_key == "group_id"
        assert descriptor.related_pivot_key == "member_id"
        assert descriptor.pivot_key_type == "object_id"

    def test_with_pivot_returns_a_copy(self):
        descriptor = belongs_to_many("Role")
        extended = descriptor.with_pivot("granted_by", "expires_at")
        assert descriptor.pivot_columns == ()
        assert extended.pivot_columns == ("granted_by", "expires_at")
        assert extended.with_pivot("granted_by").pivot_columns == ("granted_by", "expires_at")

    def test_descriptors_are_immutable(self):
        descriptor = belongs_to_many("Role")
        with pytest.raises(dataclasses.FrozenInstanceError):
            descriptor.table = "other"

    def test_declaration_function_is_exported(self):
        assert docmapper.belongs_to_many is belongs_to_many
        assert docmapper.relations.belongs_to_many("Role").related == "Role"

    def test_invalid_key_type(self):
        with pytest.raises(ValueError):
            PivotRelation(related="Role", pivot_key_type="uuid")

    def test_joining_table(self):
        assert joining_table(User, Role) == "role_user"
        assert joining_table(Role, User) == "role_user"
        assert joining_table(Group, User) == "group_user"

    def test_undeclared_relation(self):
        with pytest.raises(RelationNotFoundException) as exc_info:
            User().relation("teams")
        assert exc_info.value.relation == "teams"
        assert isinstance(exc_info.value, KeyError)

    def test_relation_is_bound_to_parent(self):
        user = load_user(JOHN)
        relation = user.relation("roles")
        assert isinstance(relation, BelongsToMany)
        assert relation.parent is user
        assert relation.related is Role


class TestPipeline:

    def test_single_parent_pipeline(self):
        relation = load_user(JOHN).relation("roles")
        assert relation.to_pipeline() == [
            {"$addFields": {"id": {"$toString": "$_id"}}},
            {"$lookup": {
                "from": "role_user",
                "localField": "id",
                "foreignField": "role_id",
                "as": "pivot",
            }},
            {"$unwind": {"path": "$pivot", "preserveNullAndEmptyArrays": True}},
            {"$match": {"pivot.user_id": "507f1f77bcf86cd799439011"}},
            {"$project": {"id": 0}},
            {"$addFields": {
                "pivot_role_id": "$pivot.role_id",
                "pivot_user_id": "$pivot.user_id",
                "pivot_granted_by": "$pivot.granted_by",
            }},
            {"$project": {"pivot": 0}},
        ]

    def test_eager_pipeline_filters_on_every_parent(self):
        relation = User().relation("roles", constrain=False)
        relation.add_eager_constraints([load_user(JOHN), load_user(JANE), load_user(JOHN), User()])
        match = [stage for stage in relation.to_pipeline() if "$match" in stage]
        assert match == [{"$match": {"pivot.user_id": {"$in": [str(JOHN), str(JANE)]}}}]

    def test_object_id_keys_join_on_native_identity(self):
        group = Group.new_from_document({"_id": STAFF})
        pipeline = group.relation("members").to_pipeline()
        assert pipeline[0] == {"$lookup": {
            "from": "group_members",
            "localField": "_id",
            "foreignField": "member_id",
            "as": "pivot",
        }}
        assert {"$match": {"pivot.group_id": STAFF}} in pipeline
        assert {"$project": {"id": 0}} not in pipeline

    def test_unsaved_parent_matches_nothing(self):
        pipeline = User().relation("roles").to_pipeline()
        assert {"$match": {"pivot.user_id": {"$in": []}}} in pipeline

    def test_to_pipeline_does_not_change_relation(self):
        relation = load_user(JOHN).relation("roles")
        before = len(relation.query.stages)
        relation.to_pipeline()
        relation.to_pipeline()
        assert len(relation.query.stages) == before

    def test_unconstrained_relation_has_no_stages(self):
        assert User().relation("roles", constrain=False).query.stages == []


class TestResults:

    def test_get_single_parent(self, seeded):
        roles = load_user(JOHN).relation("roles").get()

        assert [role["name"] for role in roles] == ["admin", "editor"]
        assert all(isinstance(role, Role) for role in roles)
        assert all(role.exists for role in roles)
        for role in roles:
            assert role["pivot_user_id"] == str(JOHN)
            assert role["pivot_role_id"] == role["id"]
            assert "pivot" not in role.attributes
            assert "id" not in role.attributes
        assert roles[0]["pivot_granted_by"] == "root"

    def test_related_documents_without_pivot_rows_are_excluded(self, seeded):
        roles = load_user(JANE).relation("roles").get()
        assert [role["name"] for role in roles] == ["editor"]
        assert load_user(BOB).relation("roles").get() == []

    def test_unsaved_parent_has_no_related_models(self, seeded):
        seeded.roles.insert_one({"name": "orphan"})
        seeded.role_user.insert_one({"user_id": None, "role_id": str(VIEWER)})
        assert User().relation("roles").get() == []

    def test_get_selected_columns_keeps_pivot_fields(self, seeded):
        roles = load_user(JANE).relation("roles").get(["name"])
        assert roles[0]["name"] == "editor"
        assert roles[0]["pivot_user_id"] == str(JANE)

    def test_reverse_relation(self, seeded):
        editor = Role.new_from_document({"_id": EDITOR, "name": "editor"})
        users = editor.relation("users").get()
        assert [user["name"] for user in users] == ["John", "Jane"]
        assert {user["pivot_role_id"] for user in users} == {str(EDITOR)}

    def test_object_id_pivot_keys(self, seeded):
        seeded.group_members.insert_many([
            {"group_id": STAFF, "member_id": JOHN},
            {"group_id": STAFF, "member_id": BOB},
            {"group_id": ObjectId(), "member_id": JANE},
        ])
        group = Group.new_from_document({"_id": STAFF, "name": "staff"})

        members = group.relation("members").get()

        assert [member["name"] for member in members] == ["John", "Bob"]
        assert members[0]["pivot_group_id"] == STAFF
        assert members[0]["pivot_member_id"] == JOHN

    def test_attribute_access_loads_relation_once(self, seeded):
        user = load_user(JOHN)
        roles = user["roles"]
        assert [role["name"] for role in roles] == ["admin", "editor"]
        assert user.relation_loaded("roles")

        seeded.role_user.delete_many({})
        assert user["roles"] is roles

    def test_membership_does_not_load_relations(self, seeded):
        user = load_user(JOHN)
        assert "roles" not in user
        assert not user.relation_loaded("roles")

        user.load("roles")
        assert "roles" in user
        assert "name" in user

    def test_loaded_relations_serialize(self, seeded):
        user = load_user(JANE).load("roles")
        result = user.to_dict()
        assert result["_id"] == str(JANE)
        assert [role["name"] for role in result["roles"]] == ["editor"]


class TestEagerLoading:

    def test_results_are_grouped_per_parent(self, seeded):
        john, jane, bob = load_user(JOHN), load_user(JANE), load_user(BOB)

        User.eager_load([john, jane, bob], "roles")

        assert [role["name"] for role in john.get_relation("roles")] == ["admin", "editor"]
        assert [role["name"] for role in jane.get_relation("roles")] == ["editor"]
        assert bob.get_relation("roles") == []

    def test_single_query_for_all_parents(self, seeded):
        relation = User().relation("roles", constrain=False)
        relation.add_eager_constraints([load_user(JOHN), load_user(JANE)])
        results = relation.get_eager()
        assert sorted(role["pivot_user_id"] for role in results) == sorted(
            [str(JOHN), str(JOHN), str(JANE)]
        )

    def test_empty_batch(self, seeded):
        assert User.eager_load([], "roles") == []

    def test_init_relation_and_match(self, seeded):
        john, bob = load_user(JOHN), load_user(BOB)
        relation = User().relation("roles", constrain=False)
        relation.init_relation([john, bob], "roles")
        assert bob.get_relation("roles") == []

        admin = Role.new_from_document({"_id": ADMIN, "pivot_user_id": str(JOHN)})
        orphan = Role.new_from_document({"_id": VIEWER})
        relation.match([john, bob], [admin, orphan], "roles")
        assert john.get_relation("roles") == [admin]
        assert bob.get_relation("roles") == []


class TestPivotRecord:

    def test_pivot_for_related_model(self, seeded):
        user = load_user(JOHN)
        relation = user.relation("roles")
        admin = relation.get()[0]

        pivot = relation.pivot_for(admin)

        assert isinstance(pivot, Pivot)
        assert pivot.get_collection_name() == "role_user"
        assert pivot.pivot_parent is user
        assert pivot.exists
        assert pivot.attributes == {
            "role_id": str(ADMIN),
            "user_id": str(JOHN),
            "granted_by": "root",
        }
        assert pivot.is_clean()
        assert pivot.timestamps is False

    def test_pivot_with_timestamps(self):
        pivot = Pivot.from_attributes(User(), {"user_id": "a", "created_at": "2023-12-01"}, "role_user")
        assert pivot.timestamps is True
        assert pivot.is_date_attribute("created_at")
        assert not pivot.exists
