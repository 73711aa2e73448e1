"""API tests: write and read contracts for day content, learner state and progress."""

import json

from db import get_db
from main import app
import models

YOUTUBE = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def day_payload(**overrides):
    payload = {
        "title": "Día 1",
        "discussionPrompt": "  ¿Qué descubriste?  ",
        "blocks": [
            {"id": "v1", "type": "video", "role": "primary", "url": YOUTUBE, "caption": " Intro "},
            {"id": "t1", "type": "text", "text": "Lee esto\n\nY esto"},
            {"id": "empty", "type": "image", "url": "   "},
            {
                "id": "q1",
                "type": "quiz",
                "questions": [
                    {"id": "a", "prompt": "2+2?", "options": ["3", "4", ""], "correctIndex": 1},
                    {"id": "b", "prompt": "", "options": ["x", "y"]},
                ],
            },
        ],
    }
    payload.update(overrides)
    return payload


def stored_day(lab_id, day_number):
    db = next(app.dependency_overrides[get_db]())
    try:
        return (
            db.query(models.Day)
            .filter(models.Day.lab_id == lab_id, models.Day.day_number == day_number)
            .first()
        )
    finally:
        db.close()


def insert_legacy_day(lab_id, day_number, content, video_url):
    db = next(app.dependency_overrides[get_db]())
    try:
        db.add(models.Day(lab_id=lab_id, day_number=day_number, title="Legacy", content=content, video_url=video_url))
        db.commit()
    finally:
        db.close()


class TestLabs:
    """Lab creation, listing and duplication."""

    def test_create_normalizes_metadata(self, client):
        response = client.post("/api/labs", json={
            "title": " Enfoque Profundo ",
            "accent_color": "#0af",
            "cover_image_url": "  ",
        })
        assert response.status_code == 201
        lab = response.json()
        assert lab["title"] == "Enfoque Profundo"
        assert lab["slug"] == "enfoque-profundo"
        assert lab["accent_color"] == "#00AAFF"
        assert lab["cover_image_url"] is None

    def test_duplicate_slug_conflicts(self, client, lab):
        response = client.post("/api/labs", json={"title": "Otro", "slug": lab["slug"]})
        assert response.status_code == 409

    def test_list(self, client, lab):
        response = client.get("/api/labs")
        assert [item["id"] for item in response.json()] == [lab["id"]]

    def test_duplicate_copies_days(self, client, lab):
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        response = client.post(f"/api/labs/{lab['id']}/duplicate")
        assert response.status_code == 201
        copy = response.json()
        assert copy["title"].endswith("(Copy)")

        original = client.get(f"/api/labs/{lab['id']}/days/1").json()
        copied = client.get(f"/api/labs/{copy['id']}/days/1").json()
        assert copied["blocks"] == original["blocks"]

    def test_unknown_lab(self, client):
        assert client.get("/api/labs/999/days").status_code == 404


class TestSaveDay:
    """Write contract: strict normalization, serialization, video_url."""

    def test_save_and_read(self, client, lab):
        response = client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        assert response.status_code == 200
        day = response.json()

        assert [b["id"] for b in day["blocks"]] == ["v1", "t1", "q1"]
        assert day["blocks"][0]["caption"] == "Intro"
        assert day["blocks"][1]["text"] == "<p>Lee esto</p><p>Y esto</p>"
        assert day["blocks"][1]["resourceSlot"] == "text"
        quiz = day["blocks"][2]
        assert quiz["group"] == "challenge"
        assert [q["id"] for q in quiz["questions"]] == ["a"]
        assert quiz["questions"][0]["options"] == ["3", "4"]
        assert quiz["questions"][0]["correctIndex"] == 1

        assert day["discussion_prompt"] == "¿Qué descubriste?"
        assert day["video_url"] == YOUTUBE
        assert day["primary"] == {
            "block_id": "v1",
            "type": "video",
            "video_id": "dQw4w9WgXcQ",
            "is_gating_video": True,
        }

    def test_stored_content_is_versioned_json(self, client, lab):
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        row = stored_day(lab["id"], 1)
        stored = json.loads(row.content)
        assert stored["version"] == 2
        assert stored["discussionPrompt"] == "¿Qué descubriste?"
        assert row.video_url == YOUTUBE

    def test_video_url_cleared_without_primary_video(self, client, lab):
        payload = day_payload(blocks=[{"id": "t", "type": "text", "text": "solo texto"}], discussionPrompt=None)
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        client.put(f"/api/labs/{lab['id']}/days/1", json=payload)
        row = stored_day(lab["id"], 1)
        assert row.video_url is None
        assert "discussionPrompt" not in row.content

    def test_resave_keeps_block_ids(self, client, lab):
        first = client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload()).json()
        second = client.put(
            f"/api/labs/{lab['id']}/days/1",
            json={"title": "Día 1", "blocks": first["blocks"], "discussionPrompt": first["discussion_prompt"]},
        ).json()
        assert second["blocks"] == first["blocks"]

    def test_empty_day_is_rejected(self, client, lab):
        response = client.put(
            f"/api/labs/{lab['id']}/days/1",
            json={"title": "Vacío", "blocks": [{"id": "t", "type": "text", "text": "  "}]},
        )
        assert response.status_code == 422

    def test_unknown_block_type_is_rejected(self, client, lab):
        response = client.put(
            f"/api/labs/{lab['id']}/days/1",
            json={"title": "X", "blocks": [{"id": "h", "type": "hologram"}]},
        )
        assert response.status_code == 422

    def test_missing_lab(self, client):
        assert client.put("/api/labs/42/days/1", json=day_payload()).status_code == 404

    def test_list_days_with_summaries(self, client, lab):
        client.put(f"/api/labs/{lab['id']}/days/2", json=day_payload(title="Día 2"))
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        items = client.get(f"/api/labs/{lab['id']}/days").json()["items"]
        assert [i["day_number"] for i in items] == [1, 2]
        assert items[0]["quiz_questions"] == 1
        assert items[0]["preview"] == "Lee esto Y esto"
        assert items[0]["gated"] is True

    def test_delete_day(self, client, lab):
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        assert client.delete(f"/api/labs/{lab['id']}/days/1").status_code == 204
        assert client.get(f"/api/labs/{lab['id']}/days/1").status_code == 404


class TestLegacyRead:
    """Read contract over rows written before the block format."""

    def test_legacy_row(self, client, lab):
        insert_legacy_day(lab["id"], 1, "Mira el video y toma notas.", YOUTUBE)
        day = client.get(f"/api/labs/{lab['id']}/days/1").json()
        assert [b["id"] for b in day["blocks"]] == ["legacy_video", "legacy_text"]
        assert day["blocks"][0]["role"] == "primary"
        assert day["blocks"][1]["role"] == "support"
        assert day["primary"]["is_gating_video"] is True
        assert day["discussion_prompt"] == ""

    def test_corrupt_row_reads_empty(self, client, lab):
        insert_legacy_day(lab["id"], 1, "{broken", None)
        day = client.get(f"/api/labs/{lab['id']}/days/1").json()
        assert day["blocks"] == []
        assert day["primary"]["block_id"] is None


class TestDayState:
    """Learner notes, checklist selections and quiz answers."""

    def test_empty_state(self, client, lab, grant):
        grant(lab["id"], "u1")
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        state = client.get(f"/api/labs/{lab['id']}/days/1/state", params={"user_id": "u1"}).json()
        assert state["notes"] == ""
        assert state["quiz_grades"] == {"q1": {"correct": 0, "total": 1}}
        assert state["updated_at"] is None

    def test_save_state_normalizes_and_grades(self, client, lab, grant):
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        grant(lab["id"], "u1")
        grant(lab["id"], "u2")
        response = client.put(
            f"/api/labs/{lab['id']}/days/1/state",
            params={"user_id": "u1"},
            json={
                "notes": "mis notas",
                "checklist_selections": {"c": ["i1", 3]},
                "quiz_answers": {"q1": {"a": 1, "b": 99}},
            },
        )
        assert response.status_code == 200
        state = response.json()
        assert state["checklist_selections"] == {"c": ["i1"]}
        assert state["quiz_answers"] == {"q1": {"a": 1}}
        assert state["quiz_grades"] == {"q1": {"correct": 1, "total": 1}}

        other = client.get(f"/api/labs/{lab['id']}/days/1/state", params={"user_id": "u2"}).json()
        assert other["notes"] == ""

    def test_state_requires_user(self, client, lab):
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        assert client.get(f"/api/labs/{lab['id']}/days/1/state").status_code == 422

    def test_state_for_missing_day(self, client, lab):
        response = client.get(f"/api/labs/{lab['id']}/days/3/state", params={"user_id": "u1"})
        assert response.status_code == 404

    def test_answers_on_stored_blocks_without_ids_are_graded(self, client, lab, grant):
        content = json.dumps({"version": 1, "blocks": [
            {"type": "quiz", "questions": [{"prompt": "2+2?", "options": ["3", "4"], "correctIndex": 1}]},
        ]})
        insert_legacy_day(lab["id"], 1, content, None)
        grant(lab["id"], "u1")

        quiz = client.get(f"/api/labs/{lab['id']}/days/1").json()["blocks"][0]
        answers = {quiz["id"]: {quiz["questions"][0]["id"]: 1}}
        state = client.put(
            f"/api/labs/{lab['id']}/days/1/state",
            params={"user_id": "u1"},
            json={"quiz_answers": answers},
        ).json()
        assert state["quiz_grades"] == {quiz["id"]: {"correct": 1, "total": 1}}


class TestProgress:
    """Days are completed in order."""

    def test_sequential_completion(self, client, lab, grant):
        grant(lab["id"], "u1")
        for n in (1, 2):
            client.put(f"/api/labs/{lab['id']}/days/{n}", json=day_payload(title=f"Día {n}"))
        url = f"/api/labs/{lab['id']}/days/{{}}/complete"

        assert client.post(url.format(2), params={"user_id": "u1"}).status_code == 409

        first = client.post(url.format(1), params={"user_id": "u1"}).json()
        assert first == {"ok": True, "already_completed": False}
        again = client.post(url.format(1), params={"user_id": "u1"}).json()
        assert again["already_completed"] is True

        assert client.post(url.format(2), params={"user_id": "u1"}).status_code == 200


class TestAccess:
    """Learner features need an active entitlement or an admin."""

    def test_state_and_completion_need_entitlement(self, client, lab):
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        base = f"/api/labs/{lab['id']}/days/1"
        params = {"user_id": "stranger"}
        assert client.get(f"{base}/state", params=params).status_code == 403
        assert client.put(f"{base}/state", params=params, json={"notes": "x"}).status_code == 403
        assert client.post(f"{base}/complete", params=params).status_code == 403

    def test_admin_has_access(self, client, lab):
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        response = client.get(f"/api/labs/{lab['id']}/days/1/state", params={"user_id": "admin"})
        assert response.status_code == 200

    def test_revoked_entitlement_blocks_access(self, client, lab, grant):
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        assert grant(lab["id"], "u1")["has_access"] is True
        revoked = grant(lab["id"], "u1", active=False)
        assert revoked["status"] == "revoked"
        assert revoked["has_access"] is False
        response = client.post(f"/api/labs/{lab['id']}/days/1/complete", params={"user_id": "u1"})
        assert response.status_code == 403

    def test_entitlement_is_per_lab(self, client, lab, grant):
        other = client.post("/api/labs", json={"title": "Otro lab"}).json()
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        grant(other["id"], "u1")
        response = client.get(f"/api/labs/{lab['id']}/days/1/state", params={"user_id": "u1"})
        assert response.status_code == 403

    def test_only_admins_grant(self, client, lab):
        response = client.put(
            f"/api/labs/{lab['id']}/entitlements/u1",
            params={"user_id": "u1"},
            json={"grant": True},
        )
        assert response.status_code == 403


class TestForum:
    """Per-day comments and admin moderation."""

    def post(self, client, lab, content, user_id="u1", day_number=1):
        return client.post(
            f"/api/labs/{lab['id']}/days/{day_number}/comments",
            params={"user_id": user_id},
            json={"content": content, "user_email": "ana@example.com"},
        )

    def test_comments_newest_first(self, client, lab):
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        first = self.post(client, lab, "  primero ")
        assert first.status_code == 201
        assert first.json()["content"] == "primero"
        self.post(client, lab, "segundo")

        comments = client.get(f"/api/labs/{lab['id']}/days/1/comments").json()
        assert [c["content"] for c in comments] == ["segundo", "primero"]
        assert comments[0]["user_email"] == "ana@example.com"

    def test_empty_comment_is_rejected(self, client, lab):
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        assert self.post(client, lab, "   ").status_code == 422
        assert self.post(client, lab, None).status_code == 422
        assert self.post(client, lab, "x" * 4001).status_code == 422

    def test_comments_are_per_day(self, client, lab):
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        client.put(f"/api/labs/{lab['id']}/days/2", json=day_payload(title="Día 2"))
        self.post(client, lab, "día uno")
        self.post(client, lab, "día dos", day_number=2)
        comments = client.get(f"/api/labs/{lab['id']}/days/2/comments").json()
        assert [c["content"] for c in comments] == ["día dos"]

    def test_comment_on_missing_day(self, client, lab):
        assert self.post(client, lab, "hola", day_number=9).status_code == 404

    def test_admin_lists_and_deletes(self, client, lab):
        client.put(f"/api/labs/{lab['id']}/days/1", json=day_payload())
        client.put(f"/api/labs/{lab['id']}/days/2", json=day_payload(title="Día 2"))
        comment = self.post(client, lab, "spam").json()
        self.post(client, lab, "otro día", day_number=2)

        url = f"/api/labs/{lab['id']}/comments"
        assert len(client.get(url, params={"user_id": "admin"}).json()) == 2
        filtered = client.get(url, params={"user_id": "admin", "day_number": 1}).json()
        assert [c["id"] for c in filtered] == [comment["id"]]

        assert client.delete(f"{url}/{comment['id']}", params={"user_id": "u1"}).status_code == 403
        assert client.delete(f"{url}/{comment['id']}", params={"user_id": "admin"}).status_code == 204
        assert client.delete(f"{url}/{comment['id']}", params={"user_id": "admin"}).status_code == 404
        assert client.get(f"/api/labs/{lab['id']}/days/1/comments").json() == []
