from typing import Dict, Any, List, Optional

import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
import networkx as nx
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

import streamlit as st
from .graph import DependencyGraph
from .materialize import resolve_start_date
from .models import Activity


def _activities(records: List[Dict[str, Any]]) -> List[Activity]:
    """Rebuild computed activities from cache-friendly records."""
    activities = []
    for idx, record in enumerate(records):
        act = Activity.from_record(record, idx)
        act.start_day = record.get("startDay")
        act.end_day = record.get("endDay")
        act.late_start = record.get("lateStart")
        act.late_finish = record.get("lateFinish")
        act.total_float = record.get("totalFloat", 0)
        act.free_float = record.get("freeFloat", 0)
        act.is_critical = bool(record.get("isCritical", False))
        activities.append(act)
    return activities


def gantt_dataframe(records: List[Dict[str, Any]], project_start: Optional[str] = None) -> pd.DataFrame:
    """One row per computed activity with calendar start and exclusive finish."""
    base_date = resolve_start_date(project_start)
    data = []
    for act in _activities(records):
        if act.start_day is None or act.end_day is None:
            continue
        data.append(
            {
                "Task": f"{act.id} - {act.name}",
                "Start": base_date + pd.Timedelta(days=act.start_day - 1),
                "Finish": base_date + pd.Timedelta(days=act.end_day),
                "Critical": "Yes" if act.is_critical else "No",
                "ID": act.id,
                "Duration": act.duration,
                "Start Day": act.start_day,
                "End Day": act.end_day,
                "TF": act.total_float,
                "FF": act.free_float,
                "Status": act.status,
            }
        )
    return pd.DataFrame(data)


@st.cache_data(show_spinner="Generating Interactive Gantt...")
def create_plotly_gantt(
    records: List[Dict[str, Any]],
    theme: Dict[str, Any],
    project_start: Optional[str] = None,
    scale: str = "Day",
) -> go.Figure:
    """
    Create an interactive Gantt chart using Plotly.
    """
    df = gantt_dataframe(records, project_start)
    if df.empty:
        fig = go.Figure()
        fig.add_annotation(text="No calculated activities to display", x=0.5, y=0.5, showarrow=False)
        fig.update_layout(height=400)
        return fig

    fig = px.timeline(
        df,
        x_start="Start",
        x_end="Finish",
        y="Task",
        color="Critical",
        color_discrete_map={"Yes": theme["critical"], "No": theme["noncritical"]},
        hover_data=["ID", "Status", "Duration", "Start Day", "End Day", "TF", "FF"],
        custom_data=["ID", "Start Day", "End Day", "Duration"],
    )
    fig.update_yaxes(autorange="reversed")
    fig.update_layout(
        height=max(450, len(df) * 32),
        margin=dict(l=10, r=10, t=30, b=10),
        title=f"Project Timeline ({scale} View)",
        xaxis_title="Calendar Timeline",
        yaxis_title="Activities",
        legend_title="Critical",
        template="plotly_white",
        paper_bgcolor=theme["surface"],
        plot_bgcolor=theme["surface"],
        font=dict(color=theme["ink"]),
    )
    fig.update_xaxes(gridcolor=theme["border"])
    fig.update_yaxes(gridcolor=theme["border"])

    scale_lower = scale.lower()
    if scale_lower == "week":
        fig.update_xaxes(tickmode="linear", dtick=7*24*60*60*1000, tickformat="%b %d", tickangle=-45)
    elif scale_lower == "month":
        fig.update_xaxes(dtick="M1", tickformat="%b %Y", tickangle=-45)
    else: # Day
        fig.update_xaxes(tickmode="linear", dtick=24*60*60*1000, tickformat="%b %d", tickangle=-45)

    return fig


@st.cache_resource(show_spinner="Generating Network Diagram...")
def create_network_diagram(records: List[Dict[str, Any]], theme: Dict[str, Any]) -> plt.Figure:
    """
    Create a network diagram visualization using NetworkX and Matplotlib.
    Expects computed activity records for caching compatibility.
    """
    activities = {act.id: act for act in _activities(records)}
    if not activities:
        fig, ax = plt.subplots(figsize=(10, 6))
        ax.text(0.5, 0.5, 'No activities to display', ha='center', va='center', fontsize=14)
        ax.axis('off')
        return fig

    G = DependencyGraph(activities.values()).to_networkx()

    num_nodes = len(G.nodes())
    fig, ax = plt.subplots(figsize=(max(14, int(num_nodes * 0.8)), max(10, int(num_nodes * 0.5))))

    pos = nx.spring_layout(G, k=3, iterations=50, seed=42)
    # Spread nodes left to right by start day
    for node in G.nodes():
        act = activities[node]
        if act.start_day is not None:
            pos[node] = (act.start_day * 3, pos[node][1])

    edge_colors = {
        'FS': theme["edge_fs"],
        'SS': theme["edge_ss"],
        'FF': theme["edge_ff"],
        'SF': theme["edge_sf"],
    }
    edge_styles = {'FS': 'solid', 'SS': 'dashed', 'FF': 'dotted', 'SF': 'dashdot'}

    for u, v, data in G.edges(data=True):
        rel_type = data.get('rel_type', 'FS')
        nx.draw_networkx_edges(G, pos, edgelist=[(u, v)],
                               edge_color=edge_colors.get(rel_type, theme["edge_fs"]),
                               style=edge_styles.get(rel_type, 'solid'),
                               arrows=True, arrowsize=20,
                               connectionstyle="arc3,rad=0.1",
                               ax=ax, width=2)

    nx.draw_networkx_edge_labels(G, pos, nx.get_edge_attributes(G, 'label'), font_size=8, ax=ax)

    critical_nodes = [n for n in G.nodes() if activities[n].is_critical]
    non_critical_nodes = [n for n in G.nodes() if not activities[n].is_critical]

    nx.draw_networkx_nodes(G, pos, nodelist=non_critical_nodes,
                           node_color=theme["node_noncrit"], node_size=3000,
                           node_shape='s', ax=ax)
    nx.draw_networkx_nodes(G, pos, nodelist=critical_nodes,
                           node_color=theme["node_crit"], node_size=3000,
                           node_shape='s', ax=ax, edgecolors=theme["critical"], linewidths=3)

    labels = {}
    for node in G.nodes():
        act = activities[node]
        if act.start_day is not None:
            labels[node] = (f"{node}\nD:{act.duration}\nS:{act.start_day} E:{act.end_day}\n"
                            f"LS:{act.late_start} LF:{act.late_finish}\nTF:{act.total_float}")
        else:
            labels[node] = f"{node}\nD:{act.duration}"
    nx.draw_networkx_labels(G, pos, labels, font_size=7, ax=ax)

    legend_elements = [
        mpatches.Patch(facecolor=theme["node_crit"], edgecolor=theme["critical"], linewidth=2, label='Critical Activity'),
        mpatches.Patch(color=theme["node_noncrit"], label='Non-Critical Activity'),
        plt.Line2D([0], [0], color=theme["edge_fs"], linewidth=2, linestyle='solid', label='FS (Finish-to-Start)'),
        plt.Line2D([0], [0], color=theme["edge_ss"], linewidth=2, linestyle='dashed', label='SS (Start-to-Start)'),
        plt.Line2D([0], [0], color=theme["edge_ff"], linewidth=2, linestyle='dotted', label='FF (Finish-to-Finish)'),
        plt.Line2D([0], [0], color=theme["edge_sf"], linewidth=2, linestyle='dashdot', label='SF (Start-to-Finish)'),
    ]
    ax.legend(handles=legend_elements, loc='upper left', bbox_to_anchor=(1.02, 1), fontsize=8, facecolor='white', frameon=True)
    ax.set_title('Activity Network (Activity on Node)', fontsize=14, fontweight='bold')
    ax.axis('off')
    plt.tight_layout()
    return fig
