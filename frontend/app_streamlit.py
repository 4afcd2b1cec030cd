import os
import time

import requests
import streamlit as st

from concatenator.models import DEFAULT_BLACKLIST

# --- Streamlit Page Configuration ---
st.set_page_config(page_title="GitHub File Concatenator", layout="wide")

# --- Configuration ---
BACKEND_API_URL = os.getenv("BACKEND_API_URL", "http://localhost:8000/api").rstrip("/")
POLL_INTERVAL_SECONDS = 1.0
DOWNLOAD_FILENAME = "concatenated_files.txt"


def backend_error(http_err: requests.exceptions.HTTPError) -> str:
    try:
        return http_err.response.json().get("detail", str(http_err))
    except ValueError:
        return str(http_err)


def wait_for_run(run_id: str, progress_placeholder) -> dict:
    """Polls the backend until the run leaves the 'running' state."""
    while True:
        response = requests.get(f"{BACKEND_API_URL}/runs/{run_id}", timeout=30)
        response.raise_for_status()
        result = response.json()
        if result["status"] != "running":
            return result
        progress_placeholder.info(result.get("progress") or "Starting...")
        time.sleep(POLL_INTERVAL_SECONDS)


# --- Initialize session state variables ---
default_session_states = {
    'output': "",
    'error_message': None,
    'loading': False,
    'run_id': None, # Run being polled; survives reruns while it is active
}
for key, default_value in default_session_states.items():
    if key not in st.session_state:
        st.session_state[key] = default_value


def start_loading():
    # Runs before the rerun, so the form below renders with the button disabled
    st.session_state.loading = True
    st.session_state.error_message = None
    st.session_state.output = ""


def finish_run(error_message=None, output=""):
    st.session_state.error_message = error_message
    st.session_state.output = output
    st.session_state.run_id = None
    st.session_state.loading = False


# --- Main App UI ---
st.title("GitHub File Concatenator")
st.markdown("""
Enter a public GitHub repository URL and choose which files to include.
Each selected file is prefixed with a `// path` comment and everything is joined into one text document.
Runs that select more than 60 files are rejected to stay inside GitHub's rate limits.
""")

with st.form("concat_form"):
    repo_url_input = st.text_input("GitHub Repository URL:", placeholder="https://github.com/owner/repo")
    blacklist_input = st.text_area("Blacklist (one pattern per line):", value="\n".join(DEFAULT_BLACKLIST), height=240)
    whitelist_input = st.text_area("Whitelist (one pattern per line):", placeholder="src/*.py")
    mode_input = st.selectbox(
        "Mode:",
        options=["minimal", "full"],
        format_func=lambda m: "Minimal (Whitelist only)" if m == "minimal" else "Full (Excluding Blacklist)",
    )
    submitted = st.form_submit_button(
        "Generating..." if st.session_state.loading else "Generate",
        type="primary",
        disabled=st.session_state.loading,
        on_click=start_loading,
    )

if submitted and st.session_state.run_id is None:
    payload = {
        "repo_url": repo_url_input,
        "blacklist": blacklist_input,
        "whitelist": whitelist_input,
        "mode": mode_input,
    }
    try:
        response = requests.post(f"{BACKEND_API_URL}/runs", json=payload, timeout=30)
        response.raise_for_status()
        st.session_state.run_id = response.json()["run_id"]
    except requests.exceptions.HTTPError as http_err:
        finish_run(error_message=f"Error from backend: {backend_error(http_err)}")
    except requests.exceptions.RequestException as req_err:
        finish_run(error_message=f"Network error: {req_err}")
    if st.session_state.run_id is None:
        st.rerun() # Re-enable the button after a rejected submission

if st.session_state.run_id:
    # run_id must survive a rerun that interrupts polling
    progress_placeholder = st.empty()
    try:
        result = wait_for_run(st.session_state.run_id, progress_placeholder)
        if result["status"] == "succeeded":
            finish_run(output=result["document"])
        else:
            finish_run(error_message=result["message"])
    except requests.exceptions.HTTPError as http_err:
        finish_run(error_message=f"Error from backend: {backend_error(http_err)}")
    except requests.exceptions.RequestException as req_err:
        finish_run(error_message=f"Network error: {req_err}")
    st.rerun() # Re-render the form with the button enabled again

if st.session_state.error_message:
    st.error(st.session_state.error_message)

if st.session_state.output:
    st.divider()
    # st.code renders a copy-to-clipboard button
    st.code(st.session_state.output, language=None)
    st.download_button(
        label="Download",
        data=st.session_state.output,
        file_name=DOWNLOAD_FILENAME,
        mime="text/plain",
        key="download_output_button"
    )

st.sidebar.header("About")
st.sidebar.info(
    "Concatenates files of a public GitHub repository into a single document, "
    "ready to paste into another tool. Requests are paced to respect GitHub's rate limits."
)
