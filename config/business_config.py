"""
业务配置接口 - 支持可替换的业务配置

新门店可以实现自己的业务配置（税率、默认薪资、课程时长等），替换默认配置。
"""
from abc import ABC, abstractmethod
from typing import List, Dict, Any


class BusinessConfig(ABC):
    """业务配置抽象基类"""

    @abstractmethod
    def get_payroll_rates(self) -> Dict[str, float]:
        """获取工资扣除费率（所得税、四大保险）"""
        pass

    @abstractmethod
    def get_salary_defaults(self) -> Dict[str, Any]:
        """获取默认薪资设置"""
        pass

    @abstractmethod
    def get_vat_rate(self) -> float:
        """获取增值税率（用于销售预测）"""
        pass

    @abstractmethod
    def get_default_session_minutes(self) -> int:
        """获取默认单节课时长（分钟）"""
        pass

    @abstractmethod
    def get_fallback_unit_price(self) -> int:
        """获取会员无单价时的预测单价"""
        pass

    @abstractmethod
    def get_event_types(self) -> List[str]:
        """获取日程事件类型"""
        pass


class FitnessStudioConfig(BusinessConfig):
    """私教健身工作室业务配置（韩国，货币单位：韩元）"""

    def get_payroll_rates(self) -> Dict[str, float]:
        return {
            "tax": 0.033,                     # 3.3% 事业所得税
            "national_pension": 0.045,        # 国民年金 4.5%
            "health_insurance": 0.03545,      # 健康保险 3.545%
            "long_term_care_of_health": 0.1295,  # 长期护理保险：健康保险费的 12.95%
            "employment_insurance": 0.009,    # 雇佣保险 0.9%
        }

    def get_salary_defaults(self) -> Dict[str, Any]:
        return {
            "base_salary": 2100000,
            "incentive_rate": 50,
            "sales_incentive_rate": 0,
            "tax_enabled": False,
            "insurances_enabled": False,
        }

    def get_vat_rate(self) -> float:
        return 0.1

    def get_default_session_minutes(self) -> int:
        return 50

    def get_fallback_unit_price(self) -> int:
        return 50000

    def get_event_types(self) -> List[str]:
        return ["new_member", "sale", "refund", "consultation", "workout"]


# 全局业务配置实例（可以在 app.py 中替换）
business_config: BusinessConfig = FitnessStudioConfig()
