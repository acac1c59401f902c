"""
Tests for the administrative tools.
"""

import json

import pytest

from app.core.exceptions import NotFoundException, ValidationException


def seed_user(fake_upstash, email, status="pending", **fields):
    record = {"email": email, "username": email.split("@")[0], "status": status, **fields}
    fake_upstash.cmd_set(f"user:{email}", json.dumps(record))
    if status == "pending":
        fake_upstash.cmd_sadd("pending_users", email)


class TestUsers:

    async def test_pending_users_hide_credentials(self, admin, fake_upstash):
        seed_user(fake_upstash, "new@x.com", hashedPassword="secret", salt="pepper")
        seed_user(fake_upstash, "old@x.com", status="approved")

        users = await admin.get_pending_users()

        assert [user["email"] for user in users] == ["new@x.com"]
        assert "hashedPassword" not in users[0]
        assert "salt" not in users[0]

    async def test_approve_user(self, admin, fake_upstash):
        seed_user(fake_upstash, "new@x.com", hashedPassword="secret")

        await admin.approve_user("New@x.com")

        stored = fake_upstash.get_json("user:new@x.com")
        assert stored["status"] == "approved"
        assert stored["hashedPassword"] == "secret"
        assert fake_upstash.members("pending_users") == set()

    async def test_approve_unknown_user(self, admin):
        with pytest.raises(NotFoundException):
            await admin.approve_user("ghost@x.com")


class TestMigrateLooks:

    async def test_legacy_looks_become_public(self, admin, fake_upstash):
        seed_user(fake_upstash, "a@x.com", status="approved")
        legacy = {"id": 1, "finalImage": "https://cdn.test/1.jpg"}
        current = {"id": 2, "finalImage": "https://cdn.test/2.jpg", "visibility": "private", "createdBy": "a@x.com"}
        fake_upstash.cmd_set("looks:a@x.com", json.dumps([legacy, current]))

        assert await admin.migrate_looks() == 1

        published = fake_upstash.hash_json("public_looks_hash")["1"]
        assert published["visibility"] == "public"
        assert published["createdBy"] == "admin@lookboard.local"
        assert fake_upstash.get_json("looks:a@x.com") == [current]
        assert await admin.migrate_looks() == 0


class TestReindexBoards:

    async def test_rebuilds_index_from_both_partitions(self, admin, engine, fake_upstash, make_board):
        seed_user(fake_upstash, "a@x.com", status="approved")
        await engine.commit(
            "a@x.com",
            lookboards=[make_board(10, "priv"), make_board(11, "pub", visibility="public")],
        )
        fake_upstash.cmd_del("publicId:priv", "publicId:pub")

        assert await admin.reindex_boards() == 2

        assert fake_upstash.get_json("publicId:priv")["id"] == 10
        assert fake_upstash.get_json("publicId:pub")["id"] == 11


class TestReconcileInstances:

    async def test_drops_ids_of_expired_instances(self, admin, shares, engine, fake_upstash, make_board):
        await engine.commit("a@x.com", lookboards=[make_board(10, "abc"), make_board(11, "def")])
        live = await shares.create_instance("abc", "a@x.com")
        fake_upstash.cmd_sadd("instances_for_board:abc", "gone-1")
        fake_upstash.cmd_sadd("instances_for_board:def", "gone-2")

        assert await admin.reconcile_instances() == 2

        assert fake_upstash.members("instances_for_board:abc") == {live}
        assert not fake_upstash.has("instances_for_board:def")


class TestLogo:

    async def test_update_and_read_logo(self, admin):
        await admin.update_logo("data:image/png;base64,aGk=")

        assert await admin.get_logo() == "data:image/png;base64,aGk="

    async def test_logo_must_be_an_image_data_uri(self, admin):
        with pytest.raises(ValidationException):
            await admin.update_logo("https://cdn.test/logo.png")
