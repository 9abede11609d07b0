"""Streamlit operator console for the AI Autofill backend."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import streamlit as st
from dotenv import load_dotenv

from aiautofill.config import Settings
from aiautofill.dataset import build_local_config, process_local_files
from aiautofill.models import FormSchema
from aiautofill.storage import DatasetNotConfiguredError
from server import build_pipeline
from services.page_loader import ExtractionError

load_dotenv()

SETTINGS = Settings.from_env(dotenv=False)

logging.basicConfig(
    level=getattr(logging, SETTINGS.log_level, logging.INFO),
    format="%(levelname)s %(name)s: %(message)s",
)

PIPELINE = build_pipeline(SETTINGS)


def _init_session_state() -> None:
    defaults = {
        "schema": None,
        "mapping": None,
        "autofill": None,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def _schema_table(schema: FormSchema) -> Dict[str, List[Any]]:
    fields = schema.fields
    return {
        "Field": list(fields),
        "Label": [descriptor.label for descriptor in fields.values()],
        "Type": [descriptor.type for descriptor in fields.values()],
        "Placeholder": [descriptor.placeholder or "" for descriptor in fields.values()],
        "Options": [", ".join(descriptor.options) for descriptor in fields.values()],
    }


def _render_dataset_section() -> None:
    st.subheader("Dataset")
    status = PIPELINE.dataset_status()
    if status.get("configured"):
        st.caption(f"Configured: {status['summary']} (saved {status.get('lastSaved') or 'n/a'})")
    else:
        st.caption("No dataset configured yet.")

    uploads = st.file_uploader(
        "Upload dataset documents",
        type=["pdf", "json", "txt", "md", "csv"],
        accept_multiple_files=True,
    )
    if uploads and st.button("Save dataset"):
        processed = process_local_files((upload.name, upload.getvalue()) for upload in uploads)
        result = PIPELINE.configure_dataset(build_local_config(processed))
        st.success(f"{result['message']} ({result['config']['summary']})")
        if processed["errorCount"]:
            st.warning(f"{processed['errorCount']} file(s) could not be processed.")


def _render_scan_section() -> None:
    st.subheader("Scan a form")
    url = st.text_input("Form URL", placeholder="https://example.com/contact")
    if st.button("Scan", disabled=not url):
        try:
            with st.spinner("Loading page..."):
                st.session_state.schema = PIPELINE.scan(url)
        except ExtractionError as exc:
            st.error(f"Scan failed: {exc}")
            return
        st.session_state.mapping = None
        st.session_state.autofill = None

    schema = st.session_state.schema
    if schema is None:
        return
    st.caption(f"{schema.url} - {schema.field_count} fields, {len(schema.buttons)} buttons")
    st.dataframe(_schema_table(schema))

    col_map, col_fill = st.columns(2)
    with col_map:
        if st.button("Run AI mapping"):
            dataset = PIPELINE.datasets.latest_config()
            if dataset is None:
                st.error("No dataset configuration found. Please upload dataset first.")
            else:
                with st.spinner("Mapping fields..."):
                    st.session_state.mapping = PIPELINE.map_schema(schema, dataset).to_dict()
    with col_fill:
        if st.button("Generate autofill commands"):
            try:
                with st.spinner("Generating commands..."):
                    st.session_state.autofill = PIPELINE.direct_autofill(schema.url)
            except DatasetNotConfiguredError as exc:
                st.error(str(exc))


def _render_results() -> None:
    mapping = st.session_state.mapping
    if mapping:
        st.subheader("AI mapping")
        result = mapping["result"]
        if not mapping["success"]:
            st.error(result.get("error") or "AI mapping failed")
        st.dataframe(
            {
                "Field": [item["fieldId"] for item in result["mappedFields"]],
                "Value": [item["mappedValue"] for item in result["mappedFields"]],
                "Confidence": [item["confidence"] for item in result["mappedFields"]],
                "Reasoning": [item["reasoning"] for item in result["mappedFields"]],
            }
        )
        if result["missingFields"]:
            st.caption("Missing: " + ", ".join(entry["label"] for entry in result["missingFields"]))
        st.caption(f"Saved to {mapping['savedTo']}")

    autofill = st.session_state.autofill
    if autofill:
        st.subheader("Autofill commands")
        if not autofill["success"]:
            st.error(autofill.get("error") or "Autofill failed")
        st.json(autofill["commands"])
        st.caption(
            f"{autofill['metadata']['totalFields']} fields, "
            f"{autofill['metadata']['successfulChunks']}/{autofill['metadata']['totalChunks']} chunks succeeded"
        )


def main() -> None:
    st.set_page_config(page_title="AI Autofill", page_icon="📝", layout="wide")
    _init_session_state()

    st.title("AI Autofill Console")
    if not SETTINGS.google_api_key:
        st.warning("GOOGLE_API_KEY is not set; AI mapping will fail until it is configured.")

    with st.sidebar:
        _render_dataset_section()
    _render_scan_section()
    _render_results()


if __name__ == "__main__":
    main()
