import os

from flask import Flask, request, jsonify, send_file, url_for
from flask_cors import CORS
from werkzeug.utils import secure_filename

from errors import ErrorKind
from File_Compression import compress_file, decompress_file

# -----------------------------------------------------------
# PATH CONFIGURATION
# -----------------------------------------------------------
BASE_DIR = os.path.abspath(os.path.dirname(__file__))
DATA_DIR = os.path.join(BASE_DIR, "data")
COMPRESSED_EXTENSION = ".huff"

# -----------------------------------------------------------
# FLASK APP SETUP
# -----------------------------------------------------------
app = Flask(__name__)
app.config.update(
    DATA_DIR=os.environ.get("HUFF_DATA_DIR", DATA_DIR),
    MAX_CONTENT_LENGTH=int(os.environ.get("HUFF_MAX_UPLOAD_MB", 64)) * 1024 * 1024,
)
CORS(app)

STATUS_BY_KIND = {
    ErrorKind.EMPTY_INPUT: 400,
    ErrorKind.DEGENERATE_INPUT: 400,
    ErrorKind.INPUT_TOO_LARGE: 413,
    ErrorKind.MISSING_SUFFIX: 400,
    ErrorKind.MALFORMED_CONTAINER: 422,
    ErrorKind.CHECKSUM_MISMATCH: 422,
    ErrorKind.DECODE_OVERFLOW: 422,
    ErrorKind.IO_FAILURE: 500,
}

# -----------------------------------------------------------
# HELPER FUNCTIONS
# -----------------------------------------------------------
def storage_dir(name):
    """uploads / compressed / restored folder under DATA_DIR, created on demand."""
    path = os.path.join(app.config["DATA_DIR"], name)
    os.makedirs(path, exist_ok=True)
    return path


def error_response(result):
    error = result.error
    app.logger.warning("%s: %s", error.kind.value, error.message)
    return jsonify({
        "success": False,
        "error": error.message,
        "kind": error.kind.value,
    }), STATUS_BY_KIND[error.kind]


def save_upload():
    """Store the uploaded `file` field; returns (filename, path) or (None, None)."""
    file = request.files.get("file")
    if not file or not file.filename:
        return None, None
    filename = secure_filename(file.filename)
    if not filename:
        return None, None
    input_path = os.path.join(storage_dir("uploads"), filename)
    file.save(input_path)
    return filename, input_path

# -----------------------------------------------------------
# ROUTES
# -----------------------------------------------------------
@app.route("/")
def home():
    return jsonify({
        "service": "huffzip",
        "endpoints": {
            "compress": url_for("compress_file_route"),
            "decompress": url_for("decompress_file_route"),
        },
    })


@app.route("/compress_file", methods=["POST"])
def compress_file_route():
    try:
        filename, input_path = save_upload()
        if not filename:
            return jsonify({"success": False, "error": "No file uploaded"}), 400

        compressed_filename = f"{filename}{COMPRESSED_EXTENSION}"
        compressed_path = os.path.join(storage_dir("compressed"), compressed_filename)
        result = compress_file(input_path, compressed_path)
        if not result.success:
            return error_response(result)

        # File size stats
        original_size = os.path.getsize(input_path)
        compressed_size = os.path.getsize(compressed_path)
        saved = original_size - compressed_size
        saved_percent = round(saved / original_size * 100, 2) if original_size else 0

        return jsonify({
            "success": True,
            "filename": filename,
            "compressed_filename": compressed_filename,
            "original_size": original_size,
            "compressed_size": compressed_size,
            "saved": saved,
            "saved_percent": saved_percent,
            "warning": result.warning,
            "download_url": url_for("download_compressed_file", filename=compressed_filename),
        })

    except Exception:
        app.logger.exception("Error in /compress_file")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@app.route("/decompress_file", methods=["POST"])
def decompress_file_route():
    try:
        filename, input_path = save_upload()
        if not filename:
            return jsonify({"success": False, "error": "No file uploaded"}), 400
        if not filename.endswith(COMPRESSED_EXTENSION):
            return jsonify({"success": False, "error": "Invalid file type"}), 400

        base_name = filename[:-len(COMPRESSED_EXTENSION)]
        output_path = os.path.join(storage_dir("restored"), base_name)
        result = decompress_file(input_path, output_path)
        if not result.success:
            return error_response(result)

        restored_filename = os.path.basename(result.path)
        return jsonify({
            "success": True,
            "original_huff": filename,
            "decompressed_file": restored_filename,
            "suffix": result.suffix,
            "size": len(result.data),
            "download_url": url_for("download_decompressed", filename=restored_filename),
        })

    except Exception:
        app.logger.exception("Error in /decompress_file")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@app.route("/download_compressed_file/<filename>")
def download_compressed_file(filename):
    filename = secure_filename(filename)
    file_path = os.path.join(storage_dir("compressed"), filename)
    if not os.path.isfile(file_path):
        return "File not found", 404

    return send_file(file_path, as_attachment=True, download_name=filename,
                     mimetype="application/octet-stream")


@app.route("/download_decompressed/<filename>")
def download_decompressed(filename):
    filename = secure_filename(filename)
    file_path = os.path.join(storage_dir("restored"), filename)
    if not os.path.isfile(file_path):
        return "File not found", 404

    return send_file(file_path, as_attachment=True, download_name=filename)

# -----------------------------------------------------------
if __name__ == "__main__":
    app.run(debug=True)
