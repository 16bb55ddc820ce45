import re
from dataclasses import dataclass
from pathlib import PurePath
from urllib.parse import unquote

import requests
import streamlit as st

from converter_api import config
from converter_api.conversion.routes import KNOWN_PAIRS, normalize_format, supported_targets

API_BASE = config.API_BASE

UPLOAD_TYPES = sorted({source for (source, _) in KNOWN_PAIRS})


class ClientError(Exception):
    """Raised when the API cannot be reached or rejects the upload."""


@dataclass
class Download:
    data: bytes
    file_name: str
    mime_type: str
    history_id: str | None = None
    history_token: str | None = None


def _filename_from_disposition(value: str | None, default: str) -> str:
    if not value:
        return default
    m = re.search(r"filename\*=UTF-8''([^;]+)", value)
    if m:
        return unquote(m.group(1))
    m = re.search(r'filename="?([^";]+)"?', value)
    return m.group(1) if m else default


def convert_upload(
    name: str,
    content: bytes,
    target: str,
    *,
    keep_history: bool = False,
    api_base: str = API_BASE,
) -> Download:
    files = {"file": (name, content, "application/octet-stream")}
    data = {"targetFormat": target, "keepHistory": "true" if keep_history else "false"}
    try:
        resp = requests.post(f"{api_base}/api/conversion/convert", files=files, data=data, timeout=300)
    except requests.RequestException as e:
        raise ClientError(f"Failed to connect to API: {e}") from e
    if resp.status_code != 200:
        try:
            message = resp.json()["detail"]["message"]
        except (ValueError, KeyError, TypeError):
            message = resp.text
        raise ClientError(f"Conversion failed: {resp.status_code} {message}")

    fallback = PurePath(name).stem + "." + normalize_format(target)
    return Download(
        data=resp.content,
        file_name=_filename_from_disposition(resp.headers.get("Content-Disposition"), fallback),
        mime_type=resp.headers.get("Content-Type", "application/octet-stream"),
        history_id=resp.headers.get("X-History-Id"),
        history_token=resp.headers.get("X-History-Token"),
    )


def _reset_state():
    for key in ["download", "error"]:
        if key in st.session_state:
            del st.session_state[key]
    # Bump the uploader key to clear any previously uploaded file widget state
    st.session_state["upload_key"] = st.session_state.get("upload_key", 0) + 1


def main() -> None:
    st.set_page_config(page_title="Document Converter", page_icon="📄", layout="centered")
    st.title("📄 Document Converter")
    st.caption(f"API base: {API_BASE}")

    if st.button("Restart", type="secondary"):
        _reset_state()
        st.rerun()

    if "upload_key" not in st.session_state:
        st.session_state["upload_key"] = 0
    uploaded = st.file_uploader(
        "Upload a document (PDF, Word, Excel, PowerPoint or image)",
        type=UPLOAD_TYPES,  # type: ignore[arg-type]
        key=f"uploader-{st.session_state['upload_key']}",
    )
    if not uploaded:
        return

    targets = supported_targets(PurePath(uploaded.name).suffix)
    if not targets:
        st.error("This file type cannot be converted.")
        return
    target = st.selectbox("Convert to", targets)
    keep_history = st.checkbox("Keep in history", value=False)

    if st.button("Convert", type="primary"):
        with st.spinner("Converting..."):
            try:
                st.session_state["download"] = convert_upload(
                    uploaded.name, uploaded.getvalue(), target, keep_history=keep_history
                )
                st.session_state.pop("error", None)
            except ClientError as e:
                st.session_state["error"] = str(e)

    download: Download | None = st.session_state.get("download")
    if download is not None:
        st.success("Conversion complete!")
        st.download_button(
            label=f"Download {download.file_name}",
            data=download.data,
            file_name=download.file_name,
            mime=download.mime_type,
        )
        if download.history_id:
            with st.expander("History access"):
                st.write("Keep this token to download the file again later.")
                st.code(f"id: {download.history_id}\ntoken: {download.history_token}")

    if err := st.session_state.get("error"):
        st.error(err)


if __name__ == "__main__":
    main()
