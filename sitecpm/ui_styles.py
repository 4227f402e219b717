from typing import Dict, Any

from .models import STATUSES

STATUS_OPTIONS = list(STATUSES)

STATUS_LABELS = {
    "NOT_STARTED": "Not Started",
    "IN_PROGRESS": "In Progress",
    "COMPLETED": "Completed",
}


THEMES = {
    "Site Concrete": {
        "bg": "#f5f5f3",
        "surface": "#ffffff",
        "surface2": "#f8f8f6",
        "ink": "#1f2328",
        "muted": "#5f6c7b",
        "accent": "#d97706",
        "accent2": "#475569",
        "border": "#e2e0dc",
        "critical": "#dc2626",
        "critical_soft": "#fde2e2",
        "noncritical": "#475569",
        "node_crit": "#fecaca",
        "node_noncrit": "#e2e8f0",
        "edge_fs": "#2563eb",
        "edge_ss": "#0f766e",
        "edge_ff": "#f59e0b",
        "edge_sf": "#7c3aed",
        "graph_edge": "#c7c2ba",
        "status": {
            "NOT_STARTED": "#e5e7eb",
            "IN_PROGRESS": "#dbeafe",
            "COMPLETED": "#dcfce7",
        },
    },
    "Nordic Blue": {
        "bg": "#f3f6fb",
        "surface": "#ffffff",
        "surface2": "#f2f7ff",
        "ink": "#1c2433",
        "muted": "#5b6b7f",
        "accent": "#3b82f6",
        "accent2": "#0f766e",
        "border": "#dbe3f2",
        "critical": "#f97316",
        "critical_soft": "#ffe2d1",
        "noncritical": "#0f766e",
        "node_crit": "#ffd6c7",
        "node_noncrit": "#d9f0ff",
        "edge_fs": "#3b82f6",
        "edge_ss": "#0f766e",
        "edge_ff": "#f59e0b",
        "edge_sf": "#8b5cf6",
        "graph_edge": "#c7d3e6",
        "status": {
            "NOT_STARTED": "#e8eef6",
            "IN_PROGRESS": "#fef3c7",
            "COMPLETED": "#dcfce7",
        },
    },
}

def get_active_theme(theme_name: str) -> Dict[str, Any]:
    return THEMES.get(theme_name, THEMES["Site Concrete"])

APP_CSS = """
<style>
:root {
    --cpm-bg: __CPM_BG__;
    --cpm-surface: __CPM_SURFACE__;
    --cpm-ink: __CPM_INK__;
    --cpm-muted: __CPM_MUTED__;
    --cpm-accent: __CPM_ACCENT__;
    --cpm-border: __CPM_BORDER__;
}
.stApp {
    background: var(--cpm-bg);
}
[data-testid="stAppViewContainer"] h1,
[data-testid="stAppViewContainer"] h2,
[data-testid="stAppViewContainer"] h3 {
    color: var(--cpm-ink);
}
[data-testid="stAppViewContainer"] .stCaption,
[data-testid="stAppViewContainer"] small {
    color: var(--cpm-muted);
}
[data-testid="stSidebar"] {
    border-right: 1px solid var(--cpm-border);
}
[data-testid="stMetricValue"] {
    color: var(--cpm-accent);
}
</style>
"""
def get_theme_css(theme: Dict[str, Any]) -> str:
    """
    Returns the CSS for the application with tokens replaced by theme values.
    """
    css = APP_CSS
    replacements = {
        "__CPM_BG__": theme["bg"],
        "__CPM_SURFACE__": theme["surface"],
        "__CPM_INK__": theme["ink"],
        "__CPM_MUTED__": theme["muted"],
        "__CPM_ACCENT__": theme["accent"],
        "__CPM_BORDER__": theme["border"],
    }
    for token, value in replacements.items():
        css = css.replace(token, value)
    return css
