# streamlit_app.py – Progressive Learning Coach
# Adaptive workplace scenarios powered by Azure OpenAI / OpenAI

import sys
import uuid
from pathlib import Path

# make src/ importable without installing the package
sys.path.insert(0, str(Path(__file__).parent / "src"))

import plotly.graph_objects as go
import streamlit as st

from progressive_learning.config import configure_logging, get_settings
from progressive_learning.difficulty import skill_description
from progressive_learning.guardrails import GuardrailLevel
from progressive_learning.models import DOMAIN_REGISTRY, Domain, Level
from progressive_learning.progressive_agent import ProgressiveLearningAgent
from progressive_learning.session import ExerciseState, LearningSession, ResponseRejected

# Color constants
BLUE = "#0078D4"
PURPLE = "#7B2FF2"
GREEN = "#107C41"
ORANGE = "#FF6F00"
RED = "#CA5010"
TEXT_MUTED = "#616161"
BORDER = "#E1DFDD"

LEVEL_LABEL = {
    Level.BEGINNER:     "🌱 Beginner",
    Level.INTERMEDIATE: "🚀 Intermediate",
}
DOMAIN_ICON = {Domain.AI: "🤖", Domain.CLOUD: "☁️"}


# ─── Page config ─────────────────────────────────────────────────────────────
st.set_page_config(
    page_title="Progressive Learning Coach",
    page_icon="🎯",
    layout="wide",
    initial_sidebar_state="expanded",
)

configure_logging()
settings = get_settings()


@st.cache_resource
def _get_agent() -> ProgressiveLearningAgent:
    """One agent (and one store connection) per server process."""
    return ProgressiveLearningAgent()


agent = _get_agent()

if "user_id" not in st.session_state:
    st.session_state["user_id"] = f"learner-{uuid.uuid4().hex[:8]}"
if "session" not in st.session_state:
    st.session_state["session"] = LearningSession(agent, st.session_state["user_id"])

session: LearningSession = st.session_state["session"]


# ─── Chart helpers ───────────────────────────────────────────────────────────

def _skill_radar(skills: dict[str, float]) -> go.Figure:
    labels = [s.replace("_", " ").title() for s in skills]
    values = list(skills.values())
    fig = go.Figure()
    fig.add_trace(go.Scatterpolar(
        r=values + values[:1],
        theta=labels + labels[:1],
        fill="toself",
        name="Proficiency",
        line=dict(color=BLUE, width=2),
        fillcolor="rgba(0,120,212,0.15)",
    ))
    fig.update_layout(
        polar=dict(
            radialaxis=dict(visible=True, range=[0, 10], gridcolor="#e0e0e0", linecolor="#e0e0e0"),
            angularaxis=dict(linecolor="#cccccc"),
            bgcolor="white",
        ),
        showlegend=False,
        margin=dict(t=30, b=30, l=60, r=60),
        height=340,
        paper_bgcolor="white",
    )
    return fig


def _score_history(scores: list[float]) -> go.Figure:
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=list(range(1, len(scores) + 1)),
        y=scores,
        mode="lines+markers",
        line=dict(color=PURPLE, width=2),
        name="Score",
    ))
    fig.add_hline(y=80, line=dict(color=GREEN, dash="dot", width=1))
    fig.add_hline(y=60, line=dict(color=RED, dash="dot", width=1))
    fig.update_layout(
        xaxis=dict(title="Scenario", dtick=1),
        yaxis=dict(title="Score", range=[0, 100]),
        margin=dict(t=20, b=40, l=40, r=20),
        height=260,
        paper_bgcolor="white",
        plot_bgcolor="white",
    )
    return fig


# ─── Sidebar ─────────────────────────────────────────────────────────────────
with st.sidebar:
    st.markdown("## 🎯 Progressive Learning")
    st.caption(f"Learner id: `{session.user_id}`")
    st.markdown("---")
    st.markdown("**Services**")
    for service, status in settings.status_summary().items():
        st.markdown(f"- {service}: {status}")
    st.markdown("---")
    if st.button("🔄 Switch track", disabled=session.busy, use_container_width=True):
        st.session_state["session"] = LearningSession(agent, session.user_id)
        st.rerun()


# ─── Domain selection ────────────────────────────────────────────────────────
if session.scenario is None:
    st.title("Choose your learning track")
    st.caption("Each scenario adapts to your previous answers. Progress is saved automatically.")

    cols = st.columns(len(Domain))
    for col, domain in zip(cols, Domain):
        with col:
            st.subheader(f"{DOMAIN_ICON[domain]} {DOMAIN_REGISTRY[domain]['name']}")
            st.markdown("\n".join(f"- {area}" for area in DOMAIN_REGISTRY[domain]["focus_areas"][:3]))

    with st.form("track_form"):
        domain = st.radio(
            "Track", list(Domain), horizontal=True,
            format_func=lambda d: f"{DOMAIN_ICON[d]} {DOMAIN_REGISTRY[d]['name']}",
        )
        level = st.radio("Level", list(Level), horizontal=True, format_func=LEVEL_LABEL.get)
        started = st.form_submit_button("Start learning", type="primary", disabled=session.busy)

    if started:
        with st.spinner("Preparing your first scenario…"):
            session.start(domain, level)
        st.rerun()
    st.stop()


# ─── Exercise loop ───────────────────────────────────────────────────────────
scenario = session.scenario
memory = agent.get_memory(session.user_id)

col_main, col_side = st.columns([3, 2])

with col_main:
    badge = "🔁 Adaptive" if scenario.is_adaptive else "📍 Baseline"
    st.markdown(f"### {scenario.title}")
    st.caption(
        f"{badge} · Difficulty {scenario.difficulty:g}/10 · "
        f"Skills: {', '.join(s.replace('_', ' ') for s in scenario.skills_required) or '—'}"
    )
    st.write(scenario.scenario)
    if scenario.context:
        st.info(scenario.context)
    if scenario.expected_outcome:
        with st.expander("What a strong answer shows"):
            st.write(scenario.expected_outcome)

    if session.state == ExerciseState.SCENARIO_SHOWN:
        with st.form("answer_form"):
            answer = st.text_area("Your response", height=220)
            submitted = st.form_submit_button("Submit response", type="primary", disabled=session.busy)
        if submitted:
            try:
                with st.spinner("Evaluating your answer…"):
                    session.submit(answer)
            except ResponseRejected as rejected:
                st.error(str(rejected))
            else:
                st.rerun()

    elif session.state == ExerciseState.FEEDBACK_SHOWN:
        feedback = session.last_feedback
        for v in session.last_check.violations if session.last_check else []:
            if v.level == GuardrailLevel.WARN:
                st.warning(v.message)

        colour = GREEN if feedback.score >= 75 else ORANGE if feedback.score >= 60 else RED
        st.markdown(
            f"<div style='border:1px solid {BORDER};border-left:6px solid {colour};"
            f"border-radius:8px;padding:12px 16px;margin:8px 0;'>"
            f"<span style='font-size:1.8rem;font-weight:700;color:{colour};'>{feedback.score:g}</span>"
            f"<span style='color:{TEXT_MUTED};'> / 100 · confidence {feedback.confidence_level:g}/10</span>"
            f"</div>",
            unsafe_allow_html=True,
        )
        c1, c2 = st.columns(2)
        with c1:
            st.markdown("**Strengths**")
            st.markdown("\n".join(f"- ✅ {s}" for s in feedback.strengths) or "—")
        with c2:
            st.markdown("**To improve**")
            st.markdown("\n".join(f"- 🔧 {s}" for s in feedback.improvements) or "—")
        if feedback.next_focus:
            st.success(f"**Next focus:** {feedback.next_focus}")

        if st.button("Next scenario ➜", type="primary", disabled=session.busy):
            with st.spinner("Adapting your next scenario…"):
                session.next_scenario()
            st.rerun()

with col_side:
    st.markdown("#### Your progress")
    analytics = agent.get_learning_analytics(session.user_id)
    if analytics is not None:
        progress = analytics.overall_progress
        m1, m2, m3 = st.columns(3)
        m1.metric("Scenarios", progress.scenarios_completed)
        m2.metric("Average", f"{progress.average_score}%")
        m3.metric("Trend", f"{progress.improvement_trend:+.1f}")

        st.plotly_chart(_skill_radar(analytics.skill_progression), use_container_width=True)
        for skill, value in analytics.skill_progression.items():
            growth = progress.skill_growth.get(skill, 0.0)
            st.caption(f"{skill.replace('_', ' ').title()}: {value:.1f} · {skill_description(value)} (+{growth:.1f})")

        if memory is not None and memory.session_history:
            st.plotly_chart(_score_history(memory.scores()), use_container_width=True)

        st.markdown(f"**Readiness:** {analytics.readiness.recommendation}")
        if analytics.readiness.scenarios_needed:
            st.caption(f"{analytics.readiness.scenarios_needed} more scenario(s) before advancement is assessed.")
