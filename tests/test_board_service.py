"""
Tests for single-board and single-look actions.
"""

import base64

import pytest

from app.core.exceptions import NotFoundException, OwnershipException, ValidationException
from app.services.board import BoardService

EMAIL = "a@x.com"
OTHER = "b@x.com"
PNG_URI = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake").decode()


@pytest.fixture
async def seeded(engine, make_look, make_board):
    await engine.commit(
        EMAIL,
        looks=[make_look(1), make_look(2, visibility="public")],
        lookboards=[
            make_board(10, "private10", look_ids=[1]),
            make_board(11, "public11", look_ids=[1, 2], visibility="public"),
        ],
    )


class FakeStorage:
    def __init__(self):
        self.uploads = []

    async def upload_data_uri(self, data_uri, folder="looks"):
        self.uploads.append((data_uri, folder))
        return f"https://assets.test/{folder}/{len(self.uploads)}.png"


class TestUpdateBoard:

    async def test_owner_updates_board(self, boards, seeded, fake_upstash, make_board):
        updated = await boards.update_board(make_board(11, "public11", title="Spring", visibility="public"), EMAIL)

        assert updated.title == "Spring"
        assert fake_upstash.hash_json("public_lookboards_hash")["11"]["title"] == "Spring"
        assert fake_upstash.get_json("publicId:public11")["title"] == "Spring"

    async def test_other_user_cannot_update_public_board(self, boards, seeded, make_board):
        with pytest.raises(OwnershipException):
            await boards.update_board(make_board(11, "public11", email=OTHER, visibility="public"), OTHER)

    async def test_unknown_board(self, boards, seeded, make_board):
        with pytest.raises(NotFoundException):
            await boards.update_board(make_board(99, "nope"), EMAIL)

    async def test_public_id_cannot_change(self, boards, seeded, make_board):
        with pytest.raises(ValidationException):
            await boards.update_board(make_board(10, "renamed"), EMAIL)


class TestDuplicateBoard:

    async def test_copy_is_private_with_fresh_ids(self, boards, seeded, fake_upstash):
        copy = await boards.duplicate_board("public11", OTHER, "Stylist B")

        assert copy.id != 11
        assert copy.public_id != "public11"
        assert copy.title == "Board 11 (Copy)"
        assert copy.visibility == "private"
        assert copy.created_by == OTHER
        assert copy.look_ids == [1, 2]
        stored = fake_upstash.get_json(f"lookboards:{OTHER}")
        assert [board["publicId"] for board in stored] == [copy.public_id]
        assert fake_upstash.get_json(f"publicId:{copy.public_id}")["createdBy"] == OTHER

    async def test_unknown_source(self, boards, seeded):
        with pytest.raises(NotFoundException):
            await boards.duplicate_board("missing", OTHER)


class TestAddVariation:

    async def test_appends_once(self, boards, seeded, fake_upstash):
        await boards.add_variation(1, "https://cdn.test/v1.jpg", EMAIL)
        look = await boards.add_variation(1, "https://cdn.test/v1.jpg", EMAIL)

        assert look.variations == ["https://cdn.test/v1.jpg"]
        assert fake_upstash.get_json(f"looks:{EMAIL}")[0]["variations"] == ["https://cdn.test/v1.jpg"]

    async def test_data_uri_is_uploaded(self, repository, engine, seeded, fake_upstash):
        storage = FakeStorage()
        service = BoardService(repository, engine, storage)

        look = await service.add_variation(2, PNG_URI, EMAIL)

        assert storage.uploads == [(PNG_URI, "variations")]
        assert look.variations == ["https://assets.test/variations/1.png"]
        assert fake_upstash.hash_json("public_looks_hash")["2"]["variations"] == look.variations

    async def test_data_uri_kept_inline_without_storage(self, boards, seeded):
        look = await boards.add_variation(1, PNG_URI, EMAIL)

        assert look.variations == [PNG_URI]

    async def test_malformed_data_uri(self, boards, seeded):
        with pytest.raises(ValidationException):
            await boards.add_variation(1, "data:text/plain;base64,aGk=", EMAIL)

    async def test_only_creator_adds_variations(self, boards, seeded):
        with pytest.raises(OwnershipException):
            await boards.add_variation(2, "https://cdn.test/v1.jpg", OTHER)


class TestAcceptMainImage:

    async def test_creator_promotes_image(self, boards, seeded, fake_upstash):
        result = await boards.accept_main_image_proposal(2, "https://cdn.test/new.jpg", EMAIL)

        assert result["override"] is None
        stored = fake_upstash.hash_json("public_looks_hash")["2"]
        assert stored["finalImage"] == "https://cdn.test/new.jpg"
        assert stored["variations"] == ["https://cdn.test/looks/2.jpg"]

    async def test_other_user_gets_an_override(self, boards, seeded, fake_upstash):
        result = await boards.accept_main_image_proposal(2, "https://cdn.test/mine.jpg", OTHER)

        assert result["override"].final_image == "https://cdn.test/mine.jpg"
        assert fake_upstash.get_json(f"user_overrides:{OTHER}") == {"2": {"finalImage": "https://cdn.test/mine.jpg"}}
        assert fake_upstash.hash_json("public_looks_hash")["2"]["finalImage"] == "https://cdn.test/looks/2.jpg"

    async def test_private_look_of_another_user_is_not_found(self, boards, seeded):
        with pytest.raises(NotFoundException):
            await boards.accept_main_image_proposal(1, "https://cdn.test/x.jpg", OTHER)
