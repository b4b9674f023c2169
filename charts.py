"""
Plotly chart builders for donation tax visualizations.
Creates interactive charts for per-bracket tax and the savings curve.
"""
import plotly.graph_objects as go
import numpy as np
from typing import Optional

from tax import FILING_STATUS_LABELS, bracket_breakdown, calculate_tax, parse_filing_status


def _bracket_label(lower: float, upper: float, rate: float) -> str:
    if np.isinf(upper):
        return f"{rate:.0%} (${lower:,.0f}+)"
    return f"{rate:.0%} (${lower:,.0f}-${upper:,.0f})"


def create_bracket_comparison_chart(annual_income: float,
                                    donation_amount: float,
                                    filing_status: str,
                                    title: str = "Tax by Bracket") -> go.Figure:
    """
    Grouped bar chart of tax owed in each bracket with and without the donation.

    Args:
        annual_income: Taxable income before the donation
        donation_amount: Deductible donation
        filing_status: One of the FilingStatus tags
        title: Chart title

    Returns:
        Plotly figure
    """
    status = parse_filing_status(filing_status)
    before = bracket_breakdown(annual_income, status)
    after = bracket_breakdown(max(annual_income - donation_amount, 0.0), status)

    # Only brackets that hold income before the donation
    used = before['taxable_amount'] > 0
    before = before[used]
    after = after[used]

    labels = [_bracket_label(row.lower_bound, row.upper_bound, row.rate)
              for row in before.itertuples()]

    savings = before['tax'].sum() - after['tax'].sum()

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=labels,
        y=before['tax'],
        name="Without Donation",
        marker_color='lightcoral',
        hovertemplate="<b>%{x}</b><br>Tax: $%{y:,.0f}<extra></extra>",
    ))
    fig.add_trace(go.Bar(
        x=labels,
        y=after['tax'],
        name="With Donation",
        marker_color='mediumseagreen',
        hovertemplate="<b>%{x}</b><br>Tax: $%{y:,.0f}<extra></extra>",
    ))

    fig.update_layout(
        title=f"{title}<br><sub>{FILING_STATUS_LABELS[status]} | Savings: ${savings:,.0f}</sub>",
        xaxis_title="Bracket",
        yaxis_title="Tax Owed ($)",
        barmode='group',
        template='plotly_white',
        margin=dict(t=100),
    )
    return fig


def create_savings_curve(annual_income: float,
                         filing_status: str,
                         current_deductions: float = 0.0,
                         target_savings: Optional[float] = None,
                         recommended_donation: Optional[float] = None,
                         exact_donation: Optional[float] = None,
                         num_points: int = 200) -> go.Figure:
    """
    Tax savings as a function of donation size.

    The curve is piecewise linear with a kink at every bracket boundary. Optional
    markers show the flat-rate recommendation and the exact solution for a target.

    Args:
        annual_income: Gross income
        filing_status: One of the FilingStatus tags
        current_deductions: Deductions already taken
        target_savings: Target savings to draw as a horizontal line
        recommended_donation: Heuristic donation to mark on the curve
        exact_donation: Exact donation to mark on the curve
        num_points: Number of donation sample points

    Returns:
        Plotly figure
    """
    status = parse_filing_status(filing_status)
    taxable_income = max(annual_income - current_deductions, 0.0)
    baseline_tax = calculate_tax(taxable_income, status)

    max_donation = max(taxable_income, recommended_donation or 0.0, exact_donation or 0.0, 1.0)
    donations = np.linspace(0, max_donation, num_points)
    savings = np.array([baseline_tax - calculate_tax(taxable_income - d, status) for d in donations])

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=donations,
        y=savings,
        mode='lines',
        name="Tax Savings",
        line=dict(color='steelblue', width=3),
        hovertemplate="Donation: $%{x:,.0f}<br>Savings: $%{y:,.0f}<extra></extra>",
    ))

    if target_savings is not None:
        fig.add_hline(
            y=target_savings,
            line_dash='dash',
            line_color='gray',
            annotation_text=f"Target ${target_savings:,.0f}",
        )

    for donation, name, color in ((recommended_donation, "Flat-Rate Estimate", 'orange'),
                                  (exact_donation, "Exact Donation", 'green')):
        if donation is None:
            continue
        fig.add_trace(go.Scatter(
            x=[donation],
            y=[baseline_tax - calculate_tax(taxable_income - donation, status)],
            mode='markers',
            name=name,
            marker=dict(color=color, size=12),
            hovertemplate=f"{name}<br>Donation: $%{{x:,.0f}}<br>Savings: $%{{y:,.0f}}<extra></extra>",
        ))

    fig.update_layout(
        title=f"Tax Savings by Donation Size<br><sub>{FILING_STATUS_LABELS[status]} | "
              f"Current Tax: ${baseline_tax:,.0f}</sub>",
        xaxis_title="Donation ($)",
        yaxis_title="Tax Savings ($)",
        template='plotly_white',
        margin=dict(t=100),
    )
    return fig
