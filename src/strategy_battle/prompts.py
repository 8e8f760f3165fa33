"""
Prompt templates for the director, for free-play agents and for the
scripted Werewolf game. Player-facing text is Chinese, as in the host UI.
"""
from typing import Dict, List, Optional

from .models import Agent, RoleType

ROLE_NAMES: Dict[RoleType, str] = {
    RoleType.WEREWOLF: "狼人",
    RoleType.SEER: "预言家",
    RoleType.WITCH: "女巫",
    RoleType.VILLAGER: "平民",
}

SYSTEM_SPEAKER = "🎮 系统"
SECRET_SPEAKER = "🔒 系统"
NIGHT_SPEAKER = "🌙 系统"
WOLF_SPEAKER = "🐺 系统"
SEER_SPEAKER = "🔮 系统"
WITCH_SPEAKER = "💊 系统"
DAY_SPEAKER = "☀️ 系统"
VOTE_SPEAKER = "🗳️ 系统"


# =========================================================================
# DIRECTOR MODE
# =========================================================================

DIRECTOR_RULES = """你是这场多人游戏的主持人（GM）。参与的玩家：{players}

你通过以下指令控制游戏，指令必须原样使用全角括号：
- 【秘密指示：玩家名|内容】 向某位玩家私下发送信息（可以多条）
- 【轮到：玩家名】 指定下一位行动的玩家（每次回复只能一条）
- 当游戏应当结束时，在回复中写出"游戏结束"并给出总结

每次回复都必须包含至少一条指令。"""

DIRECTOR_OPENING = "游戏刚刚开始。请介绍背景，按需发送秘密指示，并指定第一位行动的玩家。"
DIRECTOR_NEXT = "请根据以上进展，发出下一条指令。"

FORMAT_CORRECTION = (
    "⚠️ 主持人的回复中没有可识别的指令。请使用【轮到：玩家名】或"
    "【秘密指示：玩家名|内容】格式，或写出\"游戏结束\"。"
)


def director_system_prompt(custom_prompt: str, agent_names: List[str]) -> str:
    rules = DIRECTOR_RULES.format(players="、".join(agent_names))
    if custom_prompt.strip():
        return f"{custom_prompt.strip()}\n\n{rules}"
    return rules


def director_user_prompt(context: str, opening: bool, correction: Optional[str] = None) -> str:
    parts = [f"【对话记录】\n{context or '（暂无）'}"]
    parts.append(DIRECTOR_OPENING if opening else DIRECTOR_NEXT)
    if correction:
        parts.append(correction)
    return "\n\n".join(parts)


# =========================================================================
# AGENTS
# =========================================================================

AGENT_FRAMING = "你是游戏玩家「{name}」。请始终保持角色，用简洁的中文回复。"


def agent_system_prompt(agent: Agent) -> str:
    framing = AGENT_FRAMING.format(name=agent.name)
    if agent.persona.strip():
        return f"{framing}\n\n{agent.persona.strip()}"
    return framing


def secret_block(secrets: str) -> str:
    if not secrets:
        return ""
    return f"【只有你知道的秘密信息】\n{secrets}"


def agent_turn_prompt(context: str, secrets: str) -> str:
    parts = [f"【公共对话记录】\n{context or '（暂无）'}"]
    block = secret_block(secrets)
    if block:
        parts.append(block)
    parts.append("现在轮到你行动，请发言：")
    return "\n\n".join(parts)


# =========================================================================
# WEREWOLF
# =========================================================================

def werewolf_opening(agent_names: List[str], role_counts: Dict[RoleType, int]) -> str:
    roles = "、".join(f"{count}{ROLE_NAMES[role]}" for role, count in role_counts.items() if count)
    return f"""🎮 欢迎来到AI狼人杀大乱斗！

📋 游戏配置：
• 参与玩家：{'、'.join(agent_names)}
• 身份配置：{roles}

🎯 胜利条件：
• 狼人获胜：存活狼人数量达到或超过存活好人数量
• 好人获胜：所有狼人出局

现在开始分配身份..."""


def role_reveal(agent: Agent, teammates: List[str]) -> str:
    text = f"【你的身份】你的身份是：{ROLE_NAMES[agent.role]}"
    if agent.role == RoleType.WEREWOLF:
        text += f"\n你的狼人队友：{'、'.join(teammates) or '无'}"
        text += "\n你的目标：夜晚与队友一起选择击杀目标，白天隐藏身份并投票放逐好人。"
    elif agent.role == RoleType.SEER:
        text += "\n你的能力：每晚可以查验一名玩家是否为狼人。"
    elif agent.role == RoleType.WITCH:
        text += (
            "\n你的能力：解药（一次）可救活当晚被狼人击杀的玩家；"
            "毒药（一次）可毒杀任意一名玩家。两瓶药可以在同一晚使用。"
        )
    else:
        text += "\n你的目标：通过发言和投票找出狼人。"
    return text


def seer_result_secret(day_number: int, target_name: str, is_wolf: bool) -> str:
    return f"[查验结果] 第{day_number}夜你查验的 {target_name} {'是狼人' if is_wolf else '不是狼人'}"


def wolf_night_prompt(day_number: int, alive: List[str], targets: List[str],
                      teammates: List[str], teammate_choices: Dict[str, str]) -> str:
    lines = [
        f"[狼人夜晚行动 - 第{day_number}夜]",
        "",
        f"存活的玩家：{'、'.join(alive)}",
        f"可击杀的目标：{'、'.join(targets)}",
    ]
    if teammates:
        lines.append(f"你的狼人队友：{'、'.join(teammates)}")
    if teammate_choices:
        chosen = "、".join(f"{wolf}→{target}" for wolf, target in teammate_choices.items())
        lines.append(f"队友已选择：{chosen}")
    lines += ["", '请选择今晚要击杀的目标，以JSON格式回复：{"target": "玩家名字"}']
    return "\n".join(lines)


def seer_night_prompt(day_number: int, targets: List[str], checks: Dict[str, bool]) -> str:
    checked = "、".join(f"{name}({'狼人' if wolf else '不是狼人'})" for name, wolf in checks.items()) or "无"
    return f"""[预言家夜晚行动 - 第{day_number}夜]

可查验的玩家：{'、'.join(targets)}
你已查验过：{checked}

请选择要查验的玩家，以JSON格式回复：{{"target": "玩家名字"}}"""


def witch_night_prompt(day_number: int, victim: Optional[str], antidote_available: bool,
                       poison_available: bool, poison_targets: List[str]) -> str:
    lines = [
        f"[女巫夜晚行动 - 第{day_number}夜]",
        "",
        f"• 解药：{'✅ 可用' if antidote_available else '❌ 不可用'}",
        f"• 毒药：{'✅ 可用' if poison_available else '❌ 已用'}",
        "",
    ]
    if victim:
        lines.append(f"今晚狼人击杀的玩家是：{victim}")
    else:
        lines.append("今晚没有玩家被狼人击杀。")
    if poison_available:
        lines.append(f"可毒杀的目标：{'、'.join(poison_targets)}")
    lines += [
        "",
        "请按以下格式回复（两行都要写）：",
        "解药：救 / 不救",
        "毒药：玩家名字 / 不用",
    ]
    return "\n".join(lines)


def role_hint(agent: Agent, teammates: List[str], checks: Dict[str, bool],
              antidote_used: bool, poison_used: bool) -> str:
    if agent.role == RoleType.WEREWOLF:
        return f"你是狼人（秘密），队友：{'、'.join(teammates) or '无'}。你需要伪装成好人。"
    if agent.role == RoleType.SEER:
        history = "、".join(f"{name}({'狼人' if wolf else '不是狼人'})" for name, wolf in checks.items())
        return f"你是预言家，你已查验：{history or '无'}"
    if agent.role == RoleType.WITCH:
        return (
            f"你是女巫。解药：{'已使用' if antidote_used else '未使用'}；"
            f"毒药：{'已使用' if poison_used else '未使用'}"
        )
    return "你需要通过发言找出狼人。"


def day_speech_prompt(day_number: int, hint: str, last_night: str, alive: List[str],
                      dead: List[str], speeches: List[str]) -> str:
    return f"""【狼人杀 - 第{day_number}天 白天讨论】

{hint}

【昨晚情况】
{last_night}

【当前存活】
{'、'.join(alive)}

【已出局】
{'、'.join(dead) or '无'}

【之前的发言】
{chr(10).join(speeches) or '你是第一个发言的'}

现在轮到你发言，请分析局势并表达你的看法。

请以JSON格式回复：
{{"speech": "你的发言内容（100字内）", "suspicion": "你最怀疑的玩家名字"}}"""


def vote_prompt(day_number: int, speeches: List[str], targets: List[str]) -> str:
    return f"""【狼人杀 - 第{day_number}天 投票阶段】

根据今天的发言，投票决定要放逐谁。

【今天的发言回顾】
{chr(10).join(speeches) or '（无人发言）'}

【可投票对象】
{'、'.join(targets)}

请以JSON格式回复：{{"target": "要投票的玩家名字"}}"""


ACTION_CORRECTION = "⚠️ 无法识别你的选择。请只从以下名字中选择一个，并严格按格式回复：{options}"


def final_reveal(winner_label: str, agents: List[Agent]) -> str:
    lines = ["🎉========== 游戏结束 ==========🎉", "", f"获胜方：{winner_label}", "", "身份揭晓："]
    for agent in agents:
        status = "✅ 存活" if agent.alive else "💀 出局"
        role = ROLE_NAMES.get(agent.role, "未知") if agent.role else "未知"
        lines.append(f"• {agent.name}：{role} ({status})")
    return "\n".join(lines)
