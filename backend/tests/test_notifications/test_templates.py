"""
Tests for the notification template engine.
"""

import pytest

from order_tracker.services.notifications.templates import (
    STAGE_UPDATE_TEMPLATE,
    TemplateEngine,
    TemplateNotFoundError,
    TemplateRenderError,
)


@pytest.fixture
def engine() -> TemplateEngine:
    return TemplateEngine()


class TestRenderMessage:
    def test_strips_surrounding_whitespace(self, engine):
        body = engine.render_message(
            STAGE_UPDATE_TEMPLATE,
            {
                "first_name": "Lee",
                "order_number": "PO-5",
                "stage_display_name": "Quality Check",
                "stage_description": None,
            },
        )

        assert body == "Hi Lee, great news! Your order PO-5 has moved to: Quality Check."

    def test_missing_template(self, engine):
        with pytest.raises(TemplateNotFoundError) as exc_info:
            engine.render_message("does_not_exist", {})

        assert exc_info.value.template_name == "does_not_exist"

    def test_render_error(self, tmp_path):
        (tmp_path / "broken.txt").write_text("{{ value | no_such_filter }}")
        engine = TemplateEngine(template_dir=str(tmp_path))

        with pytest.raises(TemplateRenderError):
            engine.render_message("broken", {"value": 1})


class TestRenderEmail:
    def test_subject_and_parts(self, engine):
        email = engine.render_email(
            STAGE_UPDATE_TEMPLATE,
            "Line one\nLine two",
            {"order_number": "PO-77", "track_url": "https://shop.example.com/track"},
        )

        assert email["subject"] == "Order Update: PO-77"
        assert email["text_body"] == "Line one\nLine two"
        assert "Line one<br>Line two" in email["html_body"]
        assert 'href="https://shop.example.com/track"' in email["html_body"]

    def test_subject_without_order_number(self, engine):
        email = engine.render_email(STAGE_UPDATE_TEMPLATE, "Hi", {"track_url": "/"})

        assert email["subject"] == "Order Update: your order"

    def test_body_is_escaped(self, engine):
        email = engine.render_email(
            STAGE_UPDATE_TEMPLATE,
            "<script>alert(1)</script>\nok",
            {"order_number": "PO-1", "track_url": "/"},
        )

        assert "<script>" not in email["html_body"]
        assert "&lt;script&gt;alert(1)&lt;/script&gt;<br>ok" in email["html_body"]
