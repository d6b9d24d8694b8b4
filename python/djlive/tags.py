"""
Markup helpers for uploads.

The Phoenix client wires uploads through its built-in hooks, so the file
input and image previews must carry the refs it looks for.
"""

from .template import Template, html, safe
from .uploads import UploadConfig, UploadEntry


def live_file_input(config: UploadConfig) -> Template:
    """
    File input bound to an upload config.

    Render it inside a form with ``phx-change`` so selected files reach the
    view; ``phx-submit`` then consumes them unless ``auto_upload`` is set.
    """
    active = [entry for entry in config.entries if not entry.cancelled]
    return html(
        '<input id="{ref}" type="file" name="{name}" accept="{accept}"'
        ' data-phx-hook="Phoenix.LiveFileUpload" data-phx-update="ignore"'
        ' data-phx-upload-ref="{ref}" data-phx-active-refs="{active}"'
        ' data-phx-done-refs="{done}" data-phx-preflighted-refs="{preflighted}"{auto}{multiple} />',
        ref=config.ref,
        name=config.name,
        accept=",".join(config.accept),
        active=",".join(entry.ref for entry in active),
        done=",".join(entry.ref for entry in active if entry.done),
        preflighted=",".join(entry.ref for entry in active if entry.preflighted),
        auto=safe(" data-phx-auto-upload") if config.auto_upload else "",
        multiple=safe(" multiple") if config.max_entries > 1 else "",
    )


def live_img_preview(entry: UploadEntry) -> Template:
    """Client-side preview of a selected image, filled in by the browser."""
    return html(
        '<img id="phx-preview-{ref}" data-phx-upload-ref="{upload_ref}" data-phx-entry-ref="{ref}"'
        ' data-phx-hook="Phoenix.LiveImgPreview" data-phx-update="ignore" />',
        ref=entry.ref,
        upload_ref=entry.upload_ref,
    )
