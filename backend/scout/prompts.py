"""
Prompt assembly for scout-message generation.

``build_scout_prompt`` is pure: it only concatenates the values it is given.
Loading job-type definitions and resolving ids happens in the helpers below.
"""
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from django.shortcuts import get_object_or_404

from scout.models import JobType, OutputRule, Template


@dataclass(frozen=True)
class ScoutPrompt:
    system_prompt: str
    user_prompt: str


@dataclass(frozen=True)
class GenerationInputs:
    industry: str
    company_requirement: str
    offer_template: str
    student_profile: str


@dataclass(frozen=True)
class GenerationReference:
    """Ids that must resolve to live rows when a generation starts."""
    job_type_id: int
    output_rule_id: int
    template_id: Optional[int] = None


@dataclass(frozen=True)
class GenerationSnapshot:
    """Copied text stored with the history row."""
    job_type: str
    industry: str
    company_requirement: str
    student_profile: str
    output_rule_name: str = ''
    template_name: str = ''


@dataclass(frozen=True)
class ResolvedReference:
    job_type: JobType
    output_rule: OutputRule
    template: Optional[Template]


def load_job_type_definitions() -> Tuple[Tuple[str, str], ...]:
    """Every job type as (name, definition), in creation order."""
    return tuple(JobType.objects.order_by('created_at', 'id').values_list('name', 'definition'))


def resolve_reference(reference: GenerationReference) -> ResolvedReference:
    """Fetch the rows a generation refers to; a missing row raises Http404."""
    output_rule = get_object_or_404(OutputRule, pk=reference.output_rule_id)
    job_type = get_object_or_404(JobType, pk=reference.job_type_id)
    template = None
    if reference.template_id is not None:
        template = get_object_or_404(Template, pk=reference.template_id)
    return ResolvedReference(job_type=job_type, output_rule=output_rule, template=template)


def build_scout_prompt(
    definitions: Sequence[Tuple[str, str]],
    selected: Tuple[str, str],
    rule_text: str,
    inputs: GenerationInputs,
) -> ScoutPrompt:
    job_type, job_definition = selected
    definitions_text = '\n'.join(f'{name}：{definition}' for name, definition in definitions)

    system_prompt = f"""あなたは就職活動のための企業からの評価コメント生成アシスタントです。

# 重要な制約事項
1. **出力ルールは絶対に遵守してください** - 以下の【出力ルール】に記載された全ての指示に従うこと
2. **職種特性を最優先** - 指定された職種の定義に合致する要素を重点的に評価すること
3. **業種への適合性** - 指定業種で求められるスキルや経験を考慮すること
4. **企業要求の反映** - 企業が望むことを必ず評価に含めること

【全職種適性の定義】
{definitions_text}

【今回の指定職種】
{job_type}：{job_definition}

【出力ルール（厳守）】
{rule_text}

# 評価の優先順位
1. 指定職種（{job_type}）の特性に合致するエピソードを最優先
2. 企業が望むこと（後述）との整合性
3. 業種（後述）で求められる資質との適合性
4. 出力ルールで指定された形式・文字数・構成の厳守"""

    user_prompt = f"""# 依頼内容

【職種】{job_type}
※この職種の定義に基づいてエピソードを評価してください

【業種】{inputs.industry}
※この業種で求められるスキルや経験を考慮してください

【企業が望むこと】
{inputs.company_requirement}
※この要素を評価コメントに必ず反映させてください

【オファー文テンプレート】
{inputs.offer_template}
※このテンプレートの【】内部分のみを作成してください

【学生のプロフィール】
{inputs.student_profile}

# 作成手順
1. 学生のプロフィールから、指定職種（{job_type}）の特性に最も合致するエピソードを特定する
2. 企業が望むこと（{inputs.company_requirement}）との整合性を確認する
3. 業種（{inputs.industry}）で求められる要素を考慮する
4. 【出力ルール】に記載された文字数・形式・構成を厳密に守る
5. オファー文テンプレートの【】内部分のみを、上記1-4を踏まえて作成する

**注意**: テンプレート全体ではなく、【】内部分のみを出力してください。出力ルールに記載された全ての指示を必ず遵守してください。プロフィールに記載のない情報を想像したり、拡大解釈したりはしないでください。"""

    return ScoutPrompt(system_prompt=system_prompt, user_prompt=user_prompt)
