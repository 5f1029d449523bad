from markup import (
    CODE_OUTPUT_CELL,
    TEXT_CELL,
    find_html_images,
    find_markdown_images,
    is_absolute_reference,
    locate_images,
    missing_alt_references,
    resolve_reference,
)


ORIGIN = "http://localhost:8888"


def test_markdown_images_captured_with_and_without_alt():
    text = "Intro ![](a.png) then ![a cat](cat.jpg) and ![x](https://ex.com/y.png)"
    assert find_markdown_images(text) == [
        ("", "a.png"),
        ("a cat", "cat.jpg"),
        ("x", "https://ex.com/y.png"),
    ]


def test_markdown_image_title_and_angle_brackets_stripped():
    text = '![logo](img/logo.png "The logo") ![b](<my pic.png>)'
    assert find_markdown_images(text) == [("logo", "img/logo.png"), ("b", "my pic.png")]


def test_html_images_collected_in_order():
    html = '<div><img src="one.png" alt="first"><p><img src="two.png"></p><img alt="no src"></div>'
    assert find_html_images(html) == [("first", "one.png"), (None, "two.png"), ("no src", None)]


def test_missing_alt_markdown():
    assert missing_alt_references("![](img.png)") == ["img.png"]
    assert missing_alt_references("![a cat](img.png)") == []
    assert missing_alt_references("![   ](img.png)") == ["img.png"]


def test_missing_alt_html_inside_markdown():
    assert missing_alt_references('Some text <img src="x.png">') == ["x.png"]
    assert missing_alt_references('<img src="x.png" alt="x">') == []
    assert missing_alt_references('<img src="x.png" alt="">') == ["x.png"]


def test_missing_alt_reports_markdown_then_html():
    text = '<img src="h.png"> and ![](m.png)'
    assert missing_alt_references(text) == ["m.png", "h.png"]


def test_locate_images_text_cell_combines_markdown_and_html():
    text = '![a](m.png)\n\n<img src="h.png" alt="h">'
    assert locate_images(text, TEXT_CELL) == ["m.png", "h.png"]


def test_locate_images_code_output_is_html_only():
    html = '<div class="output"><img src="data:image/png;base64,AAAA"></div> ![a](ignored.png)'
    assert locate_images(html, CODE_OUTPUT_CELL) == ["data:image/png;base64,AAAA"]


def test_locate_images_malformed_markup_does_not_raise():
    assert isinstance(locate_images("<img src='unterminated", CODE_OUTPUT_CELL), list)
    assert locate_images("![broken](", TEXT_CELL) == []
    assert locate_images("", TEXT_CELL) == []


def test_absolute_references_used_verbatim():
    for ref in ("https://example.com/a.png", "http://x/y.gif", "data:image/png;base64,AAAA"):
        assert is_absolute_reference(ref)
        assert resolve_reference(ref, ORIGIN) == ref


def test_relative_references_resolve_under_files_prefix():
    assert resolve_reference("img.png", ORIGIN) == "http://localhost:8888/files/img.png"
    assert resolve_reference("/abs/img.png", ORIGIN) == "http://localhost:8888/files/abs/img.png"
    assert resolve_reference("my pic.png", ORIGIN + "/") == "http://localhost:8888/files/my%20pic.png"


def test_relative_references_follow_document_directory():
    assert (resolve_reference("img.png", ORIGIN, base_path="notebooks/week1")
            == "http://localhost:8888/files/notebooks/week1/img.png")
    assert (resolve_reference("../shared/img.png", ORIGIN, base_path="notebooks/week1")
            == "http://localhost:8888/files/notebooks/shared/img.png")
    # Root-relative paths ignore the document directory
    assert (resolve_reference("/img.png", ORIGIN, base_path="notebooks")
            == "http://localhost:8888/files/img.png")


def test_windows_drive_letter_is_not_a_url():
    assert not is_absolute_reference("C:/images/a.png")
