import os
import sys
import logging
import re
from datetime import datetime, timezone

import click
from dotenv import load_dotenv
from flask import Flask, request, jsonify, render_template_string
from werkzeug.exceptions import HTTPException

from analysis import (
    DEFAULT_MODEL,
    DEMO_DELAY_SECONDS,
    DEMO_KEY_POINTS,
    DEMO_MASKS,
    DEMO_SUMMARY,
    AnalysisError,
    AnalysisResult,
    analyze_document,
)
from review import ReviewSession

# ---------------------- CONFIG ---------------------- #

load_dotenv()

API_KEY_ENV = "GOOGLE_GENERATIVE_AI_API_KEY"
LEGACY_API_KEY_ENV = "GEMINI_API_KEY"


def setup_logging(log_level: str = "INFO"):
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        stream=sys.stdout,
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


setup_logging(os.environ.get("LOG_LEVEL", "INFO"))

app = Flask(__name__)

app.config["GEMINI_MODEL"] = os.environ.get("GEMINI_MODEL", DEFAULT_MODEL)
app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("MAX_CONTENT_LENGTH", 16 * 1024 * 1024))


def get_api_key():
    # Looked up per request, never cached at import.
    return os.environ.get(API_KEY_ENV) or os.environ.get(LEGACY_API_KEY_ENV)

# ---------------------- HTML TEMPLATES ---------------------- #

COMMON_HEAD = """
    <script src="https://cdn.tailwindcss.com"></script>
    <link href="https://fonts.googleapis.com/css2?family=Inter:wght@300;400;500;600;700&display=swap" rel="stylesheet"/>
    <link href="https://fonts.googleapis.com/css2?family=JetBrains+Mono:wght@400;500&display=swap" rel="stylesheet"/>
    <link rel="stylesheet" href="https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.4.0/css/all.min.css">

    <script>
        tailwind.config = {
            darkMode: "class",
            theme: {
                extend: {
                    colors: {
                        "background-dark": "#09090B",
                        "surface-dark": "#18181B",
                        "lens-blue": "#3B82F6",
                        "lens-cyan": "#06B6D4",
                        "lens-red": "#F87171",
                    },
                    fontFamily: {
                        sans: ['Inter', 'sans-serif'],
                        mono: ['JetBrains Mono', 'monospace'],
                    },
                    backgroundImage: {
                        'radial-glow': "radial-gradient(circle at center, rgba(59, 130, 246, 0.15) 0%, transparent 70%)",
                    },
                },
            },
        };
    </script>

    <style>
        ::-webkit-scrollbar { width: 6px; }
        ::-webkit-scrollbar-track { background: #09090B; }
        ::-webkit-scrollbar-thumb { background: #3f3f46; border-radius: 4px; }

        body { background-color: #09090B; color: #F4F4F5; }

        .lens-card {
            border-radius: 0.75rem;
            position: relative;
            background-color: rgba(24, 24, 27, 0.5);
            border: 1px solid #27272a;
        }

        .fade-up {
            opacity: 0;
            transform: translateY(20px);
            transition: opacity 0.6s ease-out, transform 0.6s ease-out;
        }

        .upload-zone {
            border: 2px dashed #3f3f46;
            transition: all 0.3s ease;
        }
        .upload-zone:hover { border-color: #52525b; }

        .doc-view { white-space: pre-wrap; }
    </style>
"""

COMMON_SCRIPTS = """
<script>
document.addEventListener('DOMContentLoaded', () => {
    const observer = new IntersectionObserver((entries) => {
        entries.forEach(entry => {
            if (entry.isIntersecting) {
                entry.target.style.opacity = '1';
                entry.target.style.transform = 'translateY(0)';
                observer.unobserve(entry.target);
            }
        });
    }, { threshold: 0.1 });

    const fadeElements = document.querySelectorAll('.fade-up');
    fadeElements.forEach(el => { observer.observe(el); });

    // Fallback for animations
    setTimeout(() => {
        fadeElements.forEach(el => {
            el.style.opacity = '1';
            el.style.transform = 'translateY(0)';
        });
    }, 1000);
});
</script>
"""

INDEX_HTML = """
<!DOCTYPE html>
<html class="dark" lang="en">
<head>
    <meta charset="utf-8"/>
    <meta content="width=device-width, initial-scale=1.0" name="viewport"/>
    <title>LegalLens | AI-Powered Legal Literacy</title>
    {COMMON_HEAD}
</head>
<body class="font-sans antialiased min-h-screen bg-background-dark">

<header class="border-b border-zinc-800 bg-zinc-950/50 backdrop-blur-sm">
    <div class="max-w-6xl mx-auto px-4 py-4 flex items-center justify-between">
        <div class="flex items-center gap-3">
            <div class="flex items-center justify-center w-10 h-10 rounded-lg bg-gradient-to-br from-lens-blue to-lens-cyan">
                <i class="fa-regular fa-file-lines text-white"></i>
            </div>
            <div>
                <h1 class="text-xl font-semibold text-white">LegalLens</h1>
                <p class="text-xs text-zinc-400">AI-Powered Legal Literacy</p>
            </div>
        </div>
        <div class="flex items-center gap-2">
            <span class="text-sm text-zinc-400">Demo Mode</span>
            <button id="demo-toggle" type="button" class="relative inline-flex h-6 w-11 items-center rounded-full transition-colors bg-zinc-700">
                <span id="demo-knob" class="inline-block h-4 w-4 transform rounded-full bg-white transition-transform translate-x-1"></span>
            </button>
        </div>
    </div>
</header>

<main class="max-w-6xl mx-auto px-4 py-12">

    <div id="demo-banner" class="hidden mb-8 rounded-lg p-4 bg-cyan-500/10 border border-cyan-500/30 text-cyan-300">
        <p class="font-medium"><i class="fa-solid fa-wand-magic-sparkles mr-2"></i>Demo Mode Active</p>
        <p class="text-sm text-cyan-200/80 mt-1">
            You're using simulated AI analysis. Toggle off Demo Mode and add a Google Gemini API key for real
            AI-powered legal document analysis.
        </p>
    </div>

    <div id="api-key-banner" class="hidden mb-8 rounded-lg p-4 bg-blue-500/10 border border-blue-500/30 text-blue-300">
        <p class="font-medium"><i class="fa-solid fa-circle-exclamation mr-2"></i>Google Gemini API Key Required</p>
        <p class="text-sm text-blue-200/80 mt-2">To use the AI analysis features, you need to add your Google Gemini API key:</p>
        <ol class="text-sm text-blue-200/80 space-y-2 ml-6 mt-2 list-decimal">
            <li>Get a free API key from
                <a href="https://aistudio.google.com/app/apikey" target="_blank" rel="noopener noreferrer" class="underline hover:text-blue-100">Google AI Studio <i class="fa-solid fa-arrow-up-right-from-square text-xs"></i></a>
            </li>
            <li>Add a variable named <span class="font-mono">GOOGLE_GENERATIVE_AI_API_KEY</span> to the server environment or its <span class="font-mono">.env</span> file</li>
            <li>Paste your API key as the value and restart the server</li>
            <li>Refresh this page and try analyzing again</li>
        </ol>
        <p class="text-sm text-blue-200/80 mt-3">Or enable <strong>Demo Mode</strong> in the header to test the interface without an API key.</p>
    </div>

    <!-- No file: hero + upload -->
    <section id="upload-section">
        <div class="text-center mb-12 fade-up">
            <div class="inline-flex items-center gap-2 px-4 py-2 rounded-full bg-blue-500/10 border border-blue-500/20 mb-6">
                <span id="hero-badge" class="text-sm text-blue-300">Powered by Google Gemini ({{ model_name }})</span>
            </div>
            <h2 class="text-4xl md:text-5xl font-bold text-white mb-4">
                Understand Legal Documents<br>
                <span class="text-transparent bg-clip-text bg-gradient-to-r from-blue-400 to-cyan-400">In Plain English</span>
            </h2>
            <p class="text-lg text-zinc-400 max-w-2xl mx-auto leading-relaxed">
                Upload any legal document and get AI-powered simplification, key insights, privacy protection, and audio explanations.
            </p>
        </div>

        <label class="upload-zone lens-card flex flex-col items-center justify-center p-12 cursor-pointer">
            <div class="w-16 h-16 rounded-full bg-blue-500/10 flex items-center justify-center mb-4 text-blue-400 text-2xl">
                <i class="fa-solid fa-cloud-arrow-up"></i>
            </div>
            <p class="text-lg font-medium text-white mb-1">Upload Legal Document</p>
            <p class="text-sm text-zinc-500 mb-4">TXT, DOC, or PDF files supported</p>
            <input id="file-input" type="file" accept=".txt,.doc,.docx,.pdf" class="hidden">
            <span class="bg-blue-600 hover:bg-blue-700 text-white text-sm font-medium px-4 py-2 rounded-md">Choose File</span>
        </label>
    </section>

    <!-- File selected / loading -->
    <section id="process-section" class="hidden lens-card p-6">
        <div class="flex items-center gap-3 mb-6">
            <div class="w-12 h-12 rounded-lg bg-blue-500/10 flex items-center justify-center text-blue-400 text-xl">
                <i class="fa-regular fa-file-lines"></i>
            </div>
            <div>
                <p id="file-name" class="font-medium text-white"></p>
                <p id="file-size" class="text-sm text-zinc-500"></p>
            </div>
        </div>

        <div id="error-banner" class="hidden mb-6 rounded-lg p-4 bg-red-500/10 border border-red-500/30 text-lens-red text-sm"></div>

        <button id="analyze-btn" type="button" class="w-full bg-gradient-to-r from-blue-600 to-cyan-600 hover:from-blue-700 hover:to-cyan-700 text-white font-medium h-12 rounded-md disabled:opacity-60">
            <span id="analyze-label"><i class="fa-solid fa-wand-magic-sparkles mr-2"></i>Analyze Document</span>
        </button>
    </section>

    <!-- Result -->
    <section id="result-section" class="hidden space-y-6">
        <div class="flex flex-wrap gap-3">
            <button id="mask-toggle" type="button" class="border border-zinc-700 text-zinc-200 hover:bg-zinc-800 px-4 py-2 rounded-md text-sm"></button>
            <button id="audio-toggle" type="button" class="border border-zinc-700 text-zinc-200 hover:bg-zinc-800 px-4 py-2 rounded-md text-sm"></button>
        </div>

        <div class="lens-card p-6">
            <h3 class="text-lg font-semibold text-white mb-4">Plain English Summary</h3>
            <p id="summary-text" class="doc-view text-zinc-300 leading-relaxed"></p>
        </div>

        <div class="lens-card p-6">
            <h3 class="text-lg font-semibold text-white mb-4">Key Information</h3>
            <ul id="key-points" class="space-y-3"></ul>
        </div>

        <div class="lens-card p-6">
            <h3 id="document-title" class="text-lg font-semibold text-white mb-4"></h3>
            <div class="bg-zinc-950/50 rounded-lg p-4 max-h-96 overflow-y-auto">
                <p id="document-text" class="doc-view text-sm text-zinc-400 font-mono leading-relaxed"></p>
            </div>
        </div>

        <div class="flex justify-center">
            <button id="reset-btn" type="button" class="border border-zinc-700 text-zinc-200 hover:bg-zinc-800 px-4 py-2 rounded-md text-sm">Analyze Another Document</button>
        </div>
    </section>
</main>

<script>
    const DEMO_DELAY_MS = {{ demo_delay_ms }};
    const PLACEHOLDER_FAILURE = "Failed to analyze document. Please try again.";

    const state = {
        file: null,
        fileContent: "",
        analysis: null,
        loading: false,
        error: "",
        showMasked: false,
        isPlayingAudio: false,
        showApiKeyBanner: false,
        demoMode: false,
    };

    const $ = (id) => document.getElementById(id);

    function render() {
        $('demo-toggle').classList.toggle('bg-blue-600', state.demoMode);
        $('demo-toggle').classList.toggle('bg-zinc-700', !state.demoMode);
        $('demo-knob').classList.toggle('translate-x-6', state.demoMode);
        $('demo-knob').classList.toggle('translate-x-1', !state.demoMode);
        $('demo-banner').classList.toggle('hidden', !state.demoMode);
        $('api-key-banner').classList.toggle('hidden', !state.showApiKeyBanner);
        $('hero-badge').textContent = state.demoMode ? "Demo Mode - Try It Out" : "Powered by Google Gemini ({{ model_name }})";

        $('upload-section').classList.toggle('hidden', !!state.file);
        $('process-section').classList.toggle('hidden', !state.file || !!state.analysis);
        $('result-section').classList.toggle('hidden', !state.analysis);

        if (state.file) {
            $('file-name').textContent = state.file.name;
            $('file-size').textContent = (state.file.size / 1024).toFixed(2) + " KB";
        }

        $('error-banner').classList.toggle('hidden', !state.error);
        $('error-banner').textContent = state.error;

        $('analyze-btn').disabled = state.loading;
        if (state.loading) {
            $('analyze-label').textContent = state.demoMode ? "Generating Demo Analysis..." : "Analyzing with Gemini...";
        } else {
            $('analyze-label').textContent = "Analyze Document";
        }

        if (state.analysis) {
            $('summary-text').textContent = state.analysis.simplifiedText || "";
            const list = $('key-points');
            list.innerHTML = "";
            (state.analysis.keyPoints || []).forEach((point, index) => {
                const li = document.createElement('li');
                li.className = "flex gap-3 text-zinc-300";
                const badge = document.createElement('span');
                badge.className = "flex-shrink-0 w-6 h-6 rounded-full bg-blue-500/10 text-blue-400 text-xs flex items-center justify-center";
                badge.textContent = index + 1;
                const text = document.createElement('span');
                text.textContent = point;
                li.append(badge, text);
                list.appendChild(li);
            });

            $('mask-toggle').textContent = state.showMasked ? "Show Original" : "Mask Sensitive Data";
            $('audio-toggle').textContent = state.isPlayingAudio ? "Stop Audio" : "Listen to Summary";
            $('document-title').textContent = state.showMasked ? "Privacy-Protected Version" : "Original Document";
            $('document-text').textContent = state.showMasked ? state.analysis.maskedText : state.fileContent;
        }
    }

    const DEMO_MASKS = {{ demo_masks|tojson }};

    function maskPiiLocally(content) {
        return DEMO_MASKS.reduce((text, m) => text.replace(new RegExp(m.source, m.flags), m.token), content);
    }

    function generateDemoAnalysis(content) {
        return new Promise((resolve) => {
            setTimeout(() => {
                resolve({
                    simplifiedText: {{ demo_summary|tojson }},
                    keyPoints: {{ demo_key_points|tojson }},
                    maskedText: maskPiiLocally(content),
                });
            }, DEMO_DELAY_MS);
        });
    }

    $('file-input').addEventListener('change', (e) => {
        const selectedFile = e.target.files && e.target.files[0];
        if (!selectedFile) return;

        state.file = selectedFile;
        state.error = "";
        state.analysis = null;

        const reader = new FileReader();
        reader.onload = (event) => {
            state.fileContent = event.target.result;
            render();
        };
        reader.readAsText(selectedFile);
        render();
    });

    $('demo-toggle').addEventListener('click', () => {
        state.demoMode = !state.demoMode;
        state.analysis = null;
        state.error = "";
        state.showApiKeyBanner = false;
        render();
    });

    $('analyze-btn').addEventListener('click', async () => {
        if (!state.fileContent) return;

        state.loading = true;
        state.error = "";
        state.showApiKeyBanner = false;
        render();

        try {
            if (state.demoMode) {
                state.analysis = await generateDemoAnalysis(state.fileContent);
                return;
            }

            const response = await fetch("{{ url_for('api_analyze') }}", {
                method: "POST",
                headers: { "Content-Type": "application/json" },
                body: JSON.stringify({ content: state.fileContent }),
            });
            const data = await response.json();
            if (!response.ok) {
                throw new Error(data.error || "Analysis failed");
            }
            state.analysis = data;
        } catch (err) {
            const message = (err && err.message) || PLACEHOLDER_FAILURE;
            state.error = message;
            if (message.toLowerCase().includes("api key")) {
                state.showApiKeyBanner = true;
            }
            console.error("Analysis error:", err);
        } finally {
            state.loading = false;
            render();
        }
    });

    $('mask-toggle').addEventListener('click', () => {
        state.showMasked = !state.showMasked;
        render();
    });

    function playAudio() {
        if (!state.analysis || !state.analysis.simplifiedText) return;
        state.isPlayingAudio = true;
        const utterance = new SpeechSynthesisUtterance(state.analysis.simplifiedText);
        utterance.rate = 0.9;
        utterance.pitch = 1;
        utterance.onend = () => { state.isPlayingAudio = false; render(); };
        window.speechSynthesis.speak(utterance);
    }

    function stopAudio() {
        window.speechSynthesis.cancel();
        state.isPlayingAudio = false;
    }

    $('audio-toggle').addEventListener('click', () => {
        if (state.isPlayingAudio) { stopAudio(); } else { playAudio(); }
        render();
    });

    $('reset-btn').addEventListener('click', () => {
        stopAudio();
        state.file = null;
        state.analysis = null;
        state.fileContent = "";
        state.error = "";
        state.showMasked = false;
        $('file-input').value = "";
        render();
    });

    render();
</script>
{COMMON_SCRIPTS}
</body>
</html>
"""

INDEX_HTML = INDEX_HTML.replace("{COMMON_HEAD}", COMMON_HEAD).replace("{COMMON_SCRIPTS}", COMMON_SCRIPTS)

def demo_mask_rules():
    """DEMO_MASKS as RegExp source/flags pairs, so the page masks exactly like the CLI."""
    return [
        {"source": pattern.pattern, "flags": "gi" if pattern.flags & re.IGNORECASE else "g", "token": token}
        for pattern, token in DEMO_MASKS
    ]

# ---------------------- ROUTES ---------------------- #

@app.route("/", methods=["GET"])
def index():
    return render_template_string(
        INDEX_HTML,
        model_name=app.config["GEMINI_MODEL"],
        demo_delay_ms=int(DEMO_DELAY_SECONDS * 1000),
        demo_summary=DEMO_SUMMARY,
        demo_key_points=DEMO_KEY_POINTS,
        demo_masks=demo_mask_rules(),
    )

@app.route("/health", methods=["GET"])
def health_check():
    return jsonify({
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })

@app.route("/api/analyze", methods=["POST"])
def api_analyze():
    api_key = get_api_key()
    app.logger.debug("API key exists: %s", bool(api_key))

    data = request.get_json(force=True, silent=True) or {}
    content = data.get("content") if isinstance(data, dict) else None

    try:
        result = analyze_document(content, api_key, app.config["GEMINI_MODEL"])
    except AnalysisError as e:
        if e.status_code >= 500:
            app.logger.error("Analysis error: %s", e)
        else:
            app.logger.warning("Rejected analysis request: %s", e)
        return jsonify({"error": str(e)}), e.status_code

    return jsonify(result.to_dict())

# ---------------------- ERROR HANDLERS ---------------------- #

@app.errorhandler(HTTPException)
def http_error(error):
    return jsonify({"error": error.description}), error.code

@app.errorhandler(500)
def internal_error(error):
    return jsonify({"error": "Internal server error"}), 500

# ---------------------- CLI ---------------------- #

def analyze_via_api(content: str) -> AnalysisResult:
    """Run one analysis through the /api/analyze endpoint, in-process."""
    with app.test_client() as client:
        resp = client.post("/api/analyze", json={"content": content})
    data = resp.get_json(silent=True) or {}
    if resp.status_code != 200:
        raise AnalysisError(data.get("error") or "Analysis failed")
    return AnalysisResult.from_dict(data)

@app.cli.command("review")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--demo", is_flag=True, help="Simulate the analysis locally, no Gemini call.")
@click.option("--masked", is_flag=True, help="Print the PII-masked document instead of the original.")
def review_command(path, demo, masked):
    """Analyze a plain-text document and print the summary, key points and document view."""
    session = ReviewSession(analyzer=analyze_via_api)
    if demo:
        session.toggle_demo_mode()

    session.select_file(path)
    if not session.content:
        raise click.ClickException(f"{session.file_name} is empty")

    result = session.analyze()
    if result is None:
        if session.show_api_key_banner:
            click.echo(f"Set {API_KEY_ENV} in the environment or .env, or rerun with --demo.", err=True)
        raise click.ClickException(session.error)

    if masked:
        session.toggle_view()

    click.secho("Plain English Summary", bold=True)
    click.echo(result.simplified_text)
    click.echo()
    click.secho("Key Information", bold=True)
    for i, point in enumerate(result.key_points, 1):
        click.echo(f"{i}. {point}")
    click.echo()
    click.secho("Privacy-Protected Version" if session.show_masked else "Original Document", bold=True)
    click.echo(session.visible_text)

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_ENV") == "development"
    app.run(host="0.0.0.0", port=port, debug=debug)
