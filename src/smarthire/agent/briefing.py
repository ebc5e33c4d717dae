"""System briefing builder: platform knowledge, caller profile, navigation hints.

The briefing becomes the first message of a session and is never rebuilt,
so the output must depend on the inputs only (no clocks, no randomness,
no unordered iteration).
"""

from smarthire.domain.types import NavigationContext, ProfileSummary

PLATFORM_KNOWLEDGE = """You are the virtual assistant of SmartHire, a recruiting platform that connects candidates with companies.

# What SmartHire does
- Finds the best candidates for each job posting
- Recommends courses to candidates based on the skills they are missing
- Scores candidate/job compatibility with a matching model (0-100)

# User types
1. Candidates
   - Build a profile with skills, languages and experience
   - Apply to job postings and follow their applications
   - Receive personalised course recommendations
   - Can scan their CV to fill in their profile automatically
2. Recruiters
   - Belong to a company and publish job postings with required skills
   - See candidates ranked by compatibility and manage applications
3. Companies
   - Have one or more recruiters, publish postings, receive applications

# Main features
For candidates:
- Professional profile (bio, headline, location)
- Technical skills and languages with levels from 1 to 10
- Applying to jobs and checking application status
- Course recommendations for missing skills
For recruiters:
- Job postings (title, description, salary range, modality, schedule)
- Required skills with levels
- Candidate ranking and skill gap per candidate

# Typical flow
1. A candidate signs up and completes the profile
2. The candidate searches postings and applies
3. A recruiter publishes a posting with its requirements
4. The matching service scores every application
5. Candidates get course suggestions; recruiters see the ranking

# Your role
- Guide users through the platform and explain features clearly and kindly
- Do not give technical details about endpoints or code
- Focus on use cases and user flows
- Be concise but complete
- When tools are available, use them to search jobs, apply, or list applications instead of guessing
- If you do not know something, say you do not have that information"""

SKILLS_CAP = 10
LANGUAGES_CAP = 10
EXPERIENCES_CAP = 3
EDUCATION_CAP = 2
APPLICATIONS_COUNT_CAP = 5
APPLICATIONS_LISTED = 3
POSTED_JOBS_COUNT_CAP = 5
POSTED_JOBS_LISTED = 3


def _format_score(score: float | None) -> str:
    if score is None:
        return "N/A"
    return f"{score:.0f}%"


def summarize_profile(profile: ProfileSummary) -> str:
    """Render a profile as a bounded, stably ordered block of lines."""
    lines = []
    identity = profile.identity

    # Identity
    lines.append(f"**Type:** {profile.role.capitalize()}")
    lines.append(f"**Name:** {identity.first_name} {identity.last_name}")
    lines.append(f"**Email:** {identity.email}")
    if identity.headline:
        lines.append(f"**Headline:** {identity.headline}")
    if identity.location:
        lines.append(f"**Location:** {identity.location}")
    if profile.company:
        lines.append(f"**Company:** {profile.company}")
    if profile.company_area:
        lines.append(f"**Company area:** {profile.company_area}")
    if profile.position:
        lines.append(f"**Position:** {profile.position}")

    # Skills
    skills = sorted(profile.skills, key=lambda s: (-s.level, s.name))[:SKILLS_CAP]
    if skills:
        rendered = ", ".join(f"{s.name} (level {s.level}/10)" for s in skills)
        lines.append(f"**Top skills:** {rendered}")

    # Languages
    languages = profile.languages[:LANGUAGES_CAP]
    if languages:
        rendered = ", ".join(f"{lang.name} (level {lang.level}/10)" for lang in languages)
        lines.append(f"**Languages:** {rendered}")

    # Recent experience, newest first; undated entries go last in given order
    experiences = sorted(
        profile.experiences,
        key=lambda e: (e.started_on is None, -(e.started_on.toordinal() if e.started_on else 0)),
    )[:EXPERIENCES_CAP]
    if experiences:
        rendered = ", ".join(f"{e.title} at {e.company}" for e in experiences)
        lines.append(f"**Recent experience:** {rendered}")

    # Recent education
    education = profile.education[:EDUCATION_CAP]
    if education:
        rendered = ", ".join(
            f"{e.title} - {e.institution}" + (f" ({e.status})" if e.status else "")
            for e in education
        )
        lines.append(f"**Education:** {rendered}")

    # Recent activity
    applications = profile.recent_applications[:APPLICATIONS_COUNT_CAP]
    if applications:
        lines.append(f"**Recent applications:** {len(applications)} jobs")
        rendered = ", ".join(
            f"{a.job_title} at {a.company} (compatibility: {_format_score(a.compatibility)})"
            for a in applications[:APPLICATIONS_LISTED]
        )
        lines.append(f"  - {rendered}")

    posted = profile.posted_jobs[:POSTED_JOBS_COUNT_CAP]
    if posted:
        lines.append(f"**Posted jobs:** {len(posted)}")
        rendered = ", ".join(
            f"{j.title} ({j.status}, {j.applications} applications)"
            for j in posted[:POSTED_JOBS_LISTED]
        )
        lines.append(f"  - {rendered}")

    return "\n".join(lines)


def summarize_navigation(navigation: NavigationContext) -> str:
    """Labeled navigation block; empty string when no field is set."""
    lines = []
    if navigation.page:
        lines.append(f"- Page: {navigation.page}")
    if navigation.section:
        lines.append(f"- Section: {navigation.section}")
    if navigation.action:
        lines.append(f"- Action: {navigation.action}")
    return "\n".join(lines)


def compose_system_briefing(
    static_knowledge: str,
    profile: ProfileSummary | None = None,
    navigation: NavigationContext | None = None,
) -> str:
    """Build the system briefing for a new session."""
    sections = [static_knowledge]

    if profile is not None:
        sections.append(f"**CURRENT USER:**\n{summarize_profile(profile)}")

    if navigation is not None:
        hints = summarize_navigation(navigation)
        if hints:
            sections.append(f"**CURRENT NAVIGATION CONTEXT:**\n{hints}")

    return "\n\n".join(sections)
