import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from explain.explainer import model_performance, model_parts
from explain.attributions import predict_parts
from explain.stability import predict_diagnostics
from report import plots
from report.report import ReportSection, build_report, render_html


def _sections():
    fig, ax = plt.subplots()
    ax.plot([0, 1], [0, 1])
    table = pd.DataFrame({"metric": ["rmse"], "value": [0.12345]})
    return [ReportSection("Fit <check>", figures=[("line", fig)], tables=[("scores", table)], text="hello")]


def test_html_is_self_contained():
    html_text = render_html(_sections(), "My & report")
    assert "<title>My &amp; report</title>" in html_text
    assert "Fit &lt;check&gt;" in html_text
    assert "data:image/png;base64," in html_text
    assert "0.1235" in html_text
    plt.close("all")


def test_build_report_writes_formats_and_closes_figures(tmp_path):
    sections = _sections()
    fig = sections[0].figures[0][1]
    paths = build_report(sections, str(tmp_path / "out"), title="t", formats=["html", "pdf"], basename="r")
    assert [p.rsplit(".", 1)[-1] for p in paths] == ["html", "pdf"]
    for p in paths:
        with open(p, "rb") as f:
            assert len(f.read()) > 0
    with open(paths[1], "rb") as f:
        assert f.read(5) == b"%PDF-"
    assert not plt.fignum_exists(fig.number)


def test_unknown_format_rejected(tmp_path):
    with pytest.raises(ValueError):
        build_report(_sections(), str(tmp_path), formats=["docx"])
    plt.close("all")


def test_explanation_plots_render(linear_explainer, linear_data):
    X, _ = linear_data
    obs = X.iloc[[3]].reset_index(drop=True)
    mp = model_performance(linear_explainer)
    figs = [
        plots.plot_model_performance(mp, "ecdf"),
        plots.plot_model_performance(mp, "boxplot"),
        plots.plot_feature_importance(model_parts(linear_explainer, n_repeats=2), max_vars=2),
        plots.plot_break_down(predict_parts(linear_explainer, obs)),
        plots.plot_stability(predict_diagnostics(linear_explainer, obs, neighbors=5)),
    ]
    assert all(isinstance(f, plt.Figure) for f in figs)
    with pytest.raises(ValueError):
        plots.plot_model_performance(mp, "violin")
    plt.close("all")


def test_series_facets_requires_rows(m4_df):
    fig = plots.plot_series_facets(m4_df[m4_df["period"] == "Hourly"])
    assert len([ax for ax in fig.axes if ax.get_visible()]) == 2
    with pytest.raises(ValueError):
        plots.plot_series_facets(m4_df.iloc[0:0])
    plt.close("all")


def test_boxplot_uses_current_matplotlib_api(linear_explainer):
    import warnings
    from matplotlib import MatplotlibDeprecationWarning

    mp = model_performance(linear_explainer)
    with warnings.catch_warnings():
        warnings.simplefilter("error", MatplotlibDeprecationWarning)
        fig = plots.plot_model_performance(mp, "boxplot")
    assert fig.axes[0].get_yticklabels()[0].get_text() == "linear"
    plt.close("all")
