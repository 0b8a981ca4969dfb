import pytest

from scout.prompts import GenerationInputs, build_scout_prompt, load_job_type_definitions
from scout.tests.fixtures import JobTypeFactory

DEFINITIONS = (
    ('営業職', '相手の懐に臆さず飛び込み、多くの人との関係の輪を広げていく'),
    ('技術職', '物事を極める集中力に長け、向上心を持って新たなスキルや知識を磨き続ける'),
    ('研究職', '一つの物事を継続的に考え抜くと共に、様々な角度から見つめられる視野の広さを持つ'),
)

INPUTS = GenerationInputs(
    industry='製造業',
    company_requirement='粘り強く課題に取り組める人',
    offer_template='あなたの【】という経験に魅力を感じました。',
    student_profile='研究室で3年間、材料の耐久試験を担当しました。',
)


def build(selected=DEFINITIONS[1], rule_text='150文字以内で書くこと。'):
    return build_scout_prompt(DEFINITIONS, selected, rule_text, INPUTS)


class TestBuildScoutPrompt:
    def test_system_prompt_lists_every_definition_in_order(self):
        prompt = build()
        block = prompt.system_prompt.split('【全職種適性の定義】\n', 1)[1].split('\n\n', 1)[0]
        assert block.splitlines() == [f'{name}：{definition}' for name, definition in DEFINITIONS]

    def test_selected_job_type_is_restated_separately(self):
        prompt = build()
        section = prompt.system_prompt.split('【今回の指定職種】\n', 1)[1].split('\n\n', 1)[0]
        assert section == '技術職：物事を極める集中力に長け、向上心を持って新たなスキルや知識を磨き続ける'

    def test_rule_text_is_verbatim(self):
        rule = '・200文字以内\n・です/ます調\n・「」は使わない'
        prompt = build(rule_text=rule)
        assert f'【出力ルール（厳守）】\n{rule}\n' in prompt.system_prompt

    def test_system_sections_are_ordered(self):
        text = build().system_prompt
        positions = [text.index(label) for label in ('【全職種適性の定義】', '【今回の指定職種】', '【出力ルール（厳守）】')]
        assert positions == sorted(positions)

    def test_user_prompt_sections_in_order(self):
        text = build().user_prompt
        labels = ['【職種】', '【業種】', '【企業が望むこと】', '【オファー文テンプレート】', '【学生のプロフィール】']
        positions = [text.index(label) for label in labels]
        assert positions == sorted(positions)
        assert '【職種】技術職' in text
        assert '【業種】製造業' in text
        assert INPUTS.student_profile in text
        assert INPUTS.offer_template in text

    def test_user_prompt_asks_for_fill_in_only_without_invention(self):
        text = build().user_prompt
        closing = text[text.index('【学生のプロフィール】'):]
        assert '【】内部分のみを出力してください' in closing
        assert 'プロフィールに記載のない情報を想像したり' in closing

    def test_is_pure(self):
        assert build() == build()

    def test_unknown_selected_definition_is_blank(self):
        prompt = build(selected=('事務職', ''))
        assert '【今回の指定職種】\n事務職：\n' in prompt.system_prompt


@pytest.mark.django_db
class TestLoadJobTypeDefinitions:
    def test_creation_order(self):
        JobTypeFactory(name='研究職', definition='c')
        JobTypeFactory(name='営業職', definition='a')
        JobTypeFactory(name='技術職', definition='b')
        assert load_job_type_definitions() == (('研究職', 'c'), ('営業職', 'a'), ('技術職', 'b'))
