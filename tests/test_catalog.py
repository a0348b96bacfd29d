from conftest import AUTH, COURSE_PAYLOAD


def seed(client, slug, status="Published", title=None):
    payload = {**COURSE_PAYLOAD, "slug": slug, "title": title or slug.replace("-", " ").title(), "status": status}
    r = client.post("/api/admin/courses", json=payload, headers=AUTH)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_list_shows_published_only(client, admin_override):
    seed(client, "python-basics")
    seed(client, "secret-draft", status="Draft")

    r = client.get("/api/courses")
    assert r.status_code == 200
    assert [c["slug"] for c in r.json()] == ["python-basics"]


def test_list_pagination(client, admin_override):
    for n in range(1, 6):
        seed(client, f"course-{n}")

    first = client.get("/api/courses", params={"limit": 2, "offset": 0}).json()
    second = client.get("/api/courses", params={"limit": 2, "offset": 2}).json()
    assert len(first) == 2
    assert len(second) == 2
    assert not {c["id"] for c in first} & {c["id"] for c in second}

    assert client.get("/api/courses", params={"limit": 0}).status_code == 422


def test_course_page_by_slug(client, admin_override):
    course = seed(client, "python-basics")
    r = client.post(f"/api/admin/courses/{course['id']}/chapters", json={"title": "Basics"}, headers=AUTH)
    chapter_id = r.json()["data"]["id"]
    client.post(
        f"/api/admin/courses/{course['id']}/chapters/{chapter_id}/lessons",
        json={"title": "Variables", "video_key": "secret-video.mp4"},
        headers=AUTH,
    )

    r = client.get("/api/courses/python-basics")
    assert r.status_code == 200
    data = r.json()
    assert data["title"] == "Python Basics"
    assert data["chapters"][0]["title"] == "Basics"
    lesson = data["chapters"][0]["lessons"][0]
    assert lesson == {"id": lesson["id"], "title": "Variables", "position": 1}


def test_draft_course_page_is_hidden(client, admin_override):
    seed(client, "secret-draft", status="Draft")
    r = client.get("/api/courses/secret-draft")
    assert r.status_code == 404
    assert r.json() == {"status": "error", "message": "Course not found"}


def test_unknown_slug(client):
    r = client.get("/api/courses/nothing-here")
    assert r.status_code == 404
